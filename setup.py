from setuptools import setup
from mft_inspect import __version__

setup(
	name = 'mft_inspect',
	version = __version__,
	license = 'GPLv3',
	packages = [ 'mft_inspect' ],
	provides = [ 'mft_inspect' ],
	scripts = [ 'mft_dump' ],
	description = 'A raw NTFS boot sector and $MFT record decoder for forensic inspection',
	classifiers = [
		'License :: OSI Approved :: GNU General Public License v3 (GPLv3)',
		'Operating System :: OS Independent',
		'Programming Language :: Python :: 3',
		'Development Status :: 4 - Beta'
	],
	install_requires = [ 'colorama' ],
	extras_require = {
		'test': [ 'pytest' ]
	}
)
