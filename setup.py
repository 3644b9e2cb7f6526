from setuptools import setup, find_packages

setup(
    name='clustersync',
    version='0.1.0',
    packages=find_packages(include=['clustersync', 'clustersync.*']),
    entry_points={
        'console_scripts': [
            'clustersync=clustersync.cli:main',
        ],
    },
    install_requires=[
        'elasticsearch[async]>=8.0',
        'python-dotenv',
        'pydantic>=2.0',
        'pyyaml',
        'click',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    author='While True Industries',
    author_email='adam@whiletrue.industries',
    description='Continuous index replication between search clusters',
    python_requires='>=3.10',
)
