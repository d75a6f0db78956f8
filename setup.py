#!/usr/bin/env python
install_requires = ["numpy", "xarray", "python-dateutil"]
tests_require = ["pytest"]
# %%
from setuptools import setup, find_packages

setup(
    name="rinexpy",
    packages=find_packages("src"),
    package_dir={"": "src"},
    description="Python RINEX 2/3/4 OBS/NAV/MET/CLK/IONEX and Hatanaka CRINEX reader, writer and merger",
    version="1.0.0",
    install_requires=install_requires,
    tests_require=tests_require,
    python_requires=">=3.9",
    extras_require={
        "tests": tests_require,
        "lzw": ["ncompress"],
        "geo": ["pymap3d"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Science/Research",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Atmospheric Science",
    ],
    entry_points={
        "console_scripts": [
            "rinexpy_read=rinexpy.__main__:rinexpy_read",
            "rinexpy_time=rinexpy.__main__:rinexpy_time",
            "rinexpy_merge=rinexpy.__main__:rinexpy_merge",
            "rinexpy_convert=rinexpy.__main__:rinexpy_convert",
        ]
    },
    package_data={"rinexpy": ["tests/data/*"]},
    include_package_data=True,
)
