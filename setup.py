from setuptools import setup, find_packages
import re

# Read version from tippool/__init__.py
with open('tippool/__init__.py') as f:
    version = re.search(r'^__version__ = ["\']([^"\']+)["\']', f.read(), re.MULTILINE).group(1)

setup(
    name='tip-pool',
    version=version,
    packages=find_packages(include=['tippool', 'tippool.*']),
    install_requires=[
        'PyYAML>=6.0',
        'click>=8.0',
        'pydantic>=2.0.0',
        'rich>=13.0',
    ],
    extras_require={
        'mcp': [
            'mcp[cli]>=1.0.0,<2',
        ],
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'tip-pool=tippool.cli.__main__:main',
            'tip-pool-mcp=tippool.mcp.server:run_server',
        ],
    },
    author='Personal',
    description='Pooled tip tracking, distribution and payout settlement for service teams.',
    python_requires='>=3.10',
)
