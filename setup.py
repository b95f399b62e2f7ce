from setuptools import setup, find_packages

setup(
    name="phonoscribe",
    version="1.0.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "numpy",
        "soundfile",
        "librosa",
        "torch",
        "transformers",
        "huggingface_hub",
        "fastapi",
        "pydantic",
        "uvicorn",
        "python-multipart",
        "python-dotenv",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            "phonoscribe=phonoscribe.main:main",
        ],
    },
    python_requires=">=3.9",
)
