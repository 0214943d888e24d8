from setuptools import setup, find_packages

setup(
    name="topmanuais",
    version="1.0.0",
    packages=find_packages(include=["topmanuais", "topmanuais.*"]),
    include_package_data=True,
    package_data={"topmanuais.presentation": ["templates/email/*.html"]},
    install_requires=[
        "django>=4.0",
        "djangorestframework",
        "drf-spectacular",
        "djangorestframework-simplejwt",
        "psycopg2-binary",
        "python-decouple",
        "requests",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-django",
        ],
    },
    python_requires=">=3.11",
)
