from setuptools import setup, find_packages


if __name__ == "__main__":
    setup(
        name="statespace-routines",
        version="0.1.0",
        description="Regime-switching Kalman filter and Carter-Kohn simulation smoother",
        platforms="linux",
        packages=find_packages(include=["statespace", "statespace.*"]),
        python_requires=">=3.9",
        install_requires=[
            "numpy",
            "scipy",
            "pandas",
            "sympy",
            "pyyaml",
            "cerberus",
            "numba",
        ],
        extras_require={
            "test": ["pytest"],
        },
        include_package_data=True,
        package_data={
            "statespace": [
                "schema/*",
            ]
        },
    )
