from setuptools import find_packages, setup

setup(
    name='homa-bridge',
    version='1.0.0',
    description='Native-messaging host bridging the Homa browser extension and a local xray proxy',
    author='isantolin',
    author_email='',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.11',
    install_requires=[
        'msgspec',
        'construct',
        'tenacity',
        'psutil',
        'uvloop',
        'httpx[socks]',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    entry_points={
        'console_scripts': [
            'homa-host=homabridge.daemon:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX',
    ],
)
