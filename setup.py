from setuptools import setup, find_packages

setup(
    name="facturas_app",
    version="0.1.0",
    description="Facturas de proveedor: borradores con bloqueo optimista y finalización (SQLAlchemy + FastAPI)",
    author="Gian Lucas San Martin",
    author_email="",
    license="MIT",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    include_package_data=True,
    install_requires=[
        "SQLAlchemy>=2.0",
        "fastapi>=0.100",
        "pydantic>=2.0",
        "uvicorn>=0.23",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.24",
        ],
    },
    entry_points={
        "console_scripts": [
            "facturas-app=facturas.main:main",  # levanta la API con uvicorn
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3.11",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.11",
)
