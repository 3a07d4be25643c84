from setuptools import setup, find_packages

setup(
    name="lime-toolkit",
    version="0.1.0",
    packages=find_packages(include=['lime_toolkit', 'lime_toolkit.*']),
    py_modules=[             # Include the command-line entry script
        'execute'
    ],
    install_requires=[
        'numpy',
        'pandas',
        'torch',
        'scikit-learn',
        'scipy',
        'joblib',
        'matplotlib',
        'seaborn>=0.13'
    ],
    extras_require={
        'test': ['pytest']
    },
    entry_points={
        'console_scripts': ['lime-toolkit=execute:main']
    },
    python_requires='>=3.9',
)
