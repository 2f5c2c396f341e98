from setuptools import setup, find_packages

setup(
    name="mobileauto-engine",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "Appium-Python-Client>=3.0.0",
        "selenium>=4.12.0",
        "requests>=2.28.0",
        "pyyaml>=5.4",
        "jsonschema>=4.0.0",
        "allure-pytest>=2.13.0",
    ],
    extras_require={
        "pytest": ["pytest>=7.0.0"],
        "test": ["pytest>=7.0.0"],
    },
    python_requires=">=3.8",
    package_data={
        "mobileauto": ["schemas/*.json"],
    },
)
