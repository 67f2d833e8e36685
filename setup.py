from setuptools import setup
from pathlib import Path

this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="cursordriver",
    version="0.1.0",
    description="CDP browser sessions with deadzone-aware OS pointer targeting",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=[
        "cursordriver",
        "cursordriver.session",
        "cursordriver.page",
        "cursordriver.pointer",
    ],
    install_requires=[
        "zendriver",
        "Pillow",
        "psutil",
        "httpx",
        "pyautogui",
    ],
    extras_require={
        "test": ["pytest", "pytest-asyncio"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
)
