"""Setup script for the atc-mqtt package."""

from setuptools import find_packages, setup

setup(
    name="atc-mqtt",
    version="0.1.0",
    description="Bridge BLE thermometer advertisements to MQTT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pyyaml",
        "python-dotenv",
        "paho-mqtt>=2.0.0",
        "bleak>=0.21",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-asyncio",
            "black",
            "isort",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "atc-mqtt=atcmqtt.bridge:main",
        ],
    },
)
