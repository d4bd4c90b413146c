from setuptools import setup, find_packages

setup(
    name='k3sctl',
    version='0.1.0',
    packages=find_packages(),
    include_package_data=True,
    package_data={
        'k3sctl.modules.k3s': ['assets/*'],
    },
    install_requires=[
        'typer[all]',
        'kubernetes',
        'paramiko',
        'pydantic>=2',
        'python-dotenv',
        'PyYAML',
        'urllib3',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'k3sctl=k3sctl.cli:app'
        ]
    },
    author='Your Name',
    description='Provision and manage k3s servers, agents and HA control planes over SSH',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.9',
)
