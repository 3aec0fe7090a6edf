from setuptools import setup, find_packages

setup(
    name="pcg_monitor",
    version="0.1.0",
    description="Real-time heart-rate estimation from phonocardiogram audio",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "opencv-python>=4.8",
        "sounddevice>=0.4.6",
    ],
    extras_require={
        "dev": ["pytest>=7.4"],
    },
    entry_points={
        "console_scripts": [
            "pcg-monitor=main:main",
        ]
    },
)
