# mft_inspect: raw NTFS boot sector and $MFT record decoder
#
# This module implements an interface to read sectors from a raw device or an image file.

import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)

class SectorReaderException(Exception):
	"""This is a top-level exception for this module (an I/O error)."""

	def __init__(self, value):
		self._value = value

	def __str__(self):
		return repr(self._value)

class SectorReaderNotFoundException(SectorReaderException):
	"""This exception is raised when a device or an image file does not exist."""

	pass

class SectorReaderAccessDeniedException(SectorReaderException):
	"""This exception is raised when a device or an image file cannot be opened because of insufficient privileges."""

	pass

class SectorReaderShortReadException(SectorReaderException):
	"""This exception is raised when fewer bytes than requested were read."""

	pass

class SectorReader(object):
	"""This class is used to read sector-aligned byte ranges from a file object for a volume.
	The file object is not opened or closed here.
	"""

	volume_object = None
	"""A file object for a volume."""

	volume_offset = None
	"""An offset of a volume (in bytes)."""

	def __init__(self, volume_object, volume_offset = 0):
		self.volume_object = volume_object
		self.volume_offset = volume_offset

	def read_sectors(self, start_sector, count, sector_size):
		"""Read 'count' sectors of 'sector_size' bytes starting at 'start_sector', return them as bytes."""

		offset = self.volume_offset + start_sector * sector_size
		size = count * sector_size

		try:
			self.volume_object.seek(offset)
			buf = self.volume_object.read(size)
		except (OSError, OverflowError, ValueError) as e: # An offset beyond what the platform can address raises OverflowError.
			raise SectorReaderException('Cannot read {} bytes at offset {}: {}'.format(size, offset, e))

		if buf is None or len(buf) != size:
			raise SectorReaderShortReadException('Short read at offset {}: {} of {} bytes'.format(offset, 0 if buf is None else len(buf), size))

		return buf

	def __str__(self):
		return 'SectorReader, volume offset: {}'.format(self.volume_offset)

@contextmanager
def OpenSectorReader(path, volume_offset = 0):
	"""Open a raw device or an image file (read-only), yield a SectorReader object for it. The file is closed on exit."""

	try:
		volume_object = open(path, 'rb')
	except FileNotFoundError:
		raise SectorReaderNotFoundException('Not found: {}'.format(path))
	except PermissionError:
		raise SectorReaderAccessDeniedException('Access denied: {}'.format(path))
	except OSError as e:
		raise SectorReaderException('Cannot open {}: {}'.format(path, e))

	logger.debug('Opened %s, volume offset: %d', path, volume_offset)

	try:
		yield SectorReader(volume_object, volume_offset)
	finally:
		volume_object.close()
		logger.debug('Closed %s', path)
