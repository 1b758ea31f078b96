import os

from setuptools import setup

here = os.path.abspath(os.path.dirname(__file__))

version = {}
with open(os.path.join(here, 'respeaker_doa', 'version.py')) as f:
    exec(f.read(), version)

setup(
    name='respeaker-doa',
    version=version['__version__'],
    author='respeaker-doa contributors',
    description='Direction of arrival estimation for 4-mic circular arrays (GCC-PHAT)',
    long_description='Estimates the azimuth of a sound source from one interleaved '
                     '4-channel 16 kHz capture block, e.g. on the ReSpeaker 4-mic HAT',
    packages=['respeaker_doa'],
    package_data={'respeaker_doa': ['data/*.json']},
    install_requires=[
        'numpy>=1.19.0',
        'scipy>=1.6.0',
    ],
    extras_require={
        'audio': ['sounddevice>=0.4.0'],
        'led': ['spidev>=3.5', 'gpiozero>=1.6'],
        'test': ['pytest>=7.0'],
    },
    entry_points={
        'console_scripts': ['respeaker-doa=respeaker_doa.cli:main'],
    },
    python_requires='>=3.8',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Topic :: Multimedia :: Sound/Audio :: Analysis',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
    ],
    zip_safe=False,
)
