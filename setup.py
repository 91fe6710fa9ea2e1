from setuptools import setup, find_packages

setup(
    name='sherwood-forest',
    version='1.0',
    packages=find_packages(exclude=['tests', 'experiments']),
    py_modules=[
        'data_point_collection',
        'feature_responses',
        'training_parameters',
        'tree_trainer',
        'forest_trainer',
    ],
    description='Randomized decision forest training with pluggable weak learners',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    python_requires='>=3.10',
    install_requires=['numpy'],
    extras_require={
        'experiments': ['pandas'],
        'test': ['pytest'],
    },
)
