from setuptools import setup

with open('README.rst') as f:
    readme = f.read()

setup(
    name='adb_client',
    version='0.1.0',
    description='A Python client for the adb server with sync service and package manager functionality.',
    long_description=readme,
    keywords=['adb', 'android'],
    author='Jeff Irion',
    author_email='jefflirion@users.noreply.github.com',
    packages=['adb_client', 'adb_client.transport'],
    install_requires=['aiofiles>=0.4.0'],
    classifiers=['Operating System :: OS Independent',
                 'License :: OSI Approved :: Apache Software License',
                 'Programming Language :: Python :: 3'],
    test_suite='tests'
)
