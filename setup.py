import setuptools

from infinitecontrol import __version__


with open('README.md', 'r') as fh:
    long_description = fh.read()

with open('requirements.txt', 'r') as fh:
    requirements = fh.read().splitlines()

if __name__ == '__main__':
    setuptools.setup(
        name='infinitecontrol',
        version=__version__,
        description="Transcription of stochastic optimal control problems into "
                    "nonlinear programs",
        long_description=long_description,
        long_description_content_type='text/markdown',
        packages=['infinitecontrol', 'infinitecontrol.problem',
                  'infinitecontrol.transcription'],
        python_requires='>=3.8',
        install_requires=requirements,
        extras_require={'test': ['pytest']})
