# coding=utf-8
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""setuptools install script"""

from setuptools import find_packages
from setuptools import setup

EXTRAS = {
    "test": [
        "coverage>=4.5.3",
        "flake8>=3.7.7",
        "flake8-commas>=2.0.0",
        "flake8-isort>=2.7.0",
        "flake8-quotes>=2.0.1",
        "isort>=4.3.20",
        "pylint>=2.3.1",
        "pytest>=4.6.3",
        "pytest-cov>=2.7.1",
    ]}


if __name__ == "__main__":
    setup(name="spawnrate",
          version="0.1.0",
          entry_points={
              "console_scripts": ["spawnrate = spawnrate.spawner:main"],
          },
          package_dir={"": "src"},
          packages=find_packages(where="src"),
          install_requires=[
              "fasteners>=0.14.1",
          ],
          extras_require=EXTRAS,
          python_requires=">=3.6",
          zip_safe=False)
