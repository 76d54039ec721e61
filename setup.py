from setuptools import find_packages, setup

# Base requirements for all platforms
install_requires = [
  "psutil>=6.0.0",
  "pydantic>=2.11",
  "pymongo>=4.13",  # AsyncMongoClient
  "rich>=13.7.1",
]

extras_require = {
  "formatting": ["yapf==0.40.2",],
  "testing": [
    "pytest>=8.0",
    "pytest-asyncio>=0.23",
  ],
}

setup(
  name="memory-replset",
  version="0.0.1",
  packages=find_packages(exclude=["*.tests", "*.tests.*"]),
  install_requires=install_requires,
  extras_require=extras_require,
  python_requires=">=3.11",
)
