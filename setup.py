from setuptools import find_packages, setup


extras_require = {}

extras_require["test"] = [
    'pytest>=7.4,<9.0'
]

extras_require["all"] = [
    *extras_require["test"],
]


setup(
    name='orgledger',
    version='0.1.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    license='MIT',
    description='Hierarchical organization management and donation tracking',
    entry_points={
        'console_scripts': [
            'orgledger-admin = orgledger.cli:main',
        ],
    },
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    install_requires=[
        'PyMongo>=4.6.3,<5.0',
        'python-dotenv>=1.0.0,<2.0',
        'python-dateutil>=2.8.2,<3.0',
        'bcrypt>=4.0.1,<5.0',
    ],
    extras_require=extras_require,
    python_requires=">=3.10"
)
