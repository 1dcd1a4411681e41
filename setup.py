"""
Package installation and setup script for RSS Downloader.
"""

from setuptools import setup, find_packages
import os

# Read the README file
readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
if os.path.exists(readme_path):
    with open(readme_path, 'r', encoding='utf-8') as f:
        long_description = f.read()
else:
    long_description = 'RSS Downloader - poll feeds and download every item link with bounded retries'

# Read requirements
requirements_path = os.path.join(os.path.dirname(__file__), 'requirements.txt')
if os.path.exists(requirements_path):
    with open(requirements_path, 'r', encoding='utf-8') as f:
        requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]
else:
    requirements = [
        'requests>=2.31.0',
        'feedparser>=6.0.10',
        'schedule>=1.2.0',
        'python-dateutil>=2.8.2',
        'python-dotenv>=1.0.0',
    ]

setup(
    name='rss-downloader',
    version='1.2.0',
    description='Polls RSS feeds and downloads every item link, retrying failures a bounded number of times',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='RSS Downloader Team',
    url='https://github.com/your-org/rss-downloader',

    # Package discovery
    packages=find_packages(exclude=['tests*']),
    include_package_data=True,

    # Dependencies
    install_requires=requirements,

    # Optional dependencies
    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'pytest-cov>=4.0.0',
            'responses>=0.23.0',
            'flake8>=5.0.0',
        ],
        'test': [
            'pytest>=7.0.0',
            'pytest-cov>=4.0.0',
            'responses>=0.23.0',
        ],
        'socks': [
            'requests[socks]>=2.31.0',
        ],
    },

    # Entry points
    entry_points={
        'console_scripts': [
            'rss-downloader=rss_downloader.main:main',
        ],
    },

    # Metadata
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: End Users/Desktop',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Internet :: WWW/HTTP',
        'Topic :: Text Processing :: Markup :: XML',
    ],

    # Python version requirement
    python_requires='>=3.10',

    # Keywords
    keywords='rss atom feeds torrent podcast downloader',

    # License
    license='MIT',

    # Zip safe
    zip_safe=False,
)
