"""
setup.py for poextract - purchase order extraction with LLM chunking.
"""

from setuptools import setup, find_packages

setup(
    name="poextract",
    version="1.0.0",
    description="Purchase order document to structured data extraction",
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'poextract': ['prompts/*.yaml', 'config/*.yaml'],
    },
    include_package_data=True,
    python_requires='>=3.9',
    install_requires=[
        'pdfminer.six',
        'pyyaml',
        'pydantic>=2.0',
        'openai>=1.0',
        'jinja2',
        'click',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
            'httpx',
        ],
    },
    entry_points={
        'console_scripts': [
            'poextract=poextract.cli:cli',
        ],
    },
)
