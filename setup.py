from setuptools import setup
from glob import glob
import os

package_name = 'tsdf_submaps'

setup(
    name=package_name,
    version='0.1.0',
    packages=[
        package_name,
        package_name + '.core',
        package_name + '.utils',
    ],
    data_files=[
        (os.path.join('share', package_name, 'config'), glob('config/*.yaml')),
    ],
    install_requires=[
        'setuptools',
        'numpy',
        'scipy',
        'gtsam',
        'pyyaml',
    ],
    extras_require={
        'test': ['pytest'],
    },
    zip_safe=True,
    maintainer='root',
    maintainer_email='root@todo.todo',
    description='TSDF submaps with cached registration points, bounding boxes and overlap tests',
    license='TODO',
)
