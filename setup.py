import setuptools

with open("README.md") as f:
    long_description = f.read()

setuptools.setup(
    name="nswatch",
    version="0.0.1",
    author="Taylor Barrella",
    author_email="tbarrella@gmail.com",
    description="asyncio namespace-scoped watch cache for Kubernetes",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_namespace_packages(include=["nswatch", "nswatch.*"]),
    install_requires=["kubernetes_asyncio"],
    classifiers=[
        "Development Status :: 2 - Pre-Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
    ],
    python_requires=">=3.8",
)
