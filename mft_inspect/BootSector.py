# mft_inspect: raw NTFS boot sector and $MFT record decoder
#
# This module implements an interface to work with the boot sector.

import struct
from collections import namedtuple

BOOT_SECTOR_SIZE = 512
BOOT_SECTOR_MIN_SIZE = 0x38 # Enough to hold the first $MFT cluster.
NTFS_SIGNATURE = b'NTFS    '

DEFAULT_FILE_RECORD_SEGMENT_SIZE = 1024
FILE_RECORD_SEGMENT_SIZES_SUPPORTED = [ 1024, 4096 ]

class BootSectorException(Exception):
	"""This is a top-level exception for this module."""

	def __init__(self, value):
		self._value = value

	def __str__(self):
		return repr(self._value)

class BootSectorTruncatedException(BootSectorException):
	"""This exception is raised when a boot sector is too short to hold the volume geometry."""

	pass

class BootSectorInfo(namedtuple('BootSectorInfo', [ 'sector_size', 'sectors_per_cluster', 'mft_start_cluster', 'file_record_segment_size' ])):
	"""Volume geometry decoded from a boot sector."""

	__slots__ = ()

	@property
	def cluster_size(self):
		"""A cluster size (in bytes)."""

		return self.sector_size * self.sectors_per_cluster

	@property
	def mft_start_sector(self):
		"""The first sector of the $MFT file."""

		return self.mft_start_cluster * self.sectors_per_cluster

	@property
	def mft_start_offset(self):
		"""An offset of the $MFT file (in bytes)."""

		return self.mft_start_sector * self.sector_size

class BootSector(object):
	"""This class is used to work with an NTFS boot sector."""

	boot_sector_data = None
	"""Data of a boot sector."""

	def __init__(self, boot_sector_buf):
		if len(boot_sector_buf) < BOOT_SECTOR_MIN_SIZE:
			raise BootSectorTruncatedException('Truncated boot sector: {} bytes'.format(len(boot_sector_buf)))

		self.boot_sector_data = bytes(boot_sector_buf)

	def read_field(self, format, offset):
		"""Unpack a single field at a given offset, return it (or None, if the boot sector is too short)."""

		size = struct.calcsize(format)
		data = self.boot_sector_data[offset : offset + size]
		if len(data) != size:
			return

		return struct.unpack(format, data)[0]

	def get_signature(self):
		"""Get and return the volume signature (the OEM name)."""

		return self.boot_sector_data[3 : 11]

	def is_ntfs(self):
		"""Check if the OEM name is the NTFS one."""

		return self.get_signature() == NTFS_SIGNATURE

	def get_bytes_per_sector(self):
		"""Get and return the sector size in bytes."""

		bytes_per_sector = self.read_field('<H', 0x0B)
		if bytes_per_sector == 0:
			raise BootSectorException('Invalid sector size (zero)')

		return bytes_per_sector

	def get_sectors_per_cluster(self):
		"""Get and return the cluster size in sectors."""

		sectors_per_cluster_base = self.read_field('B', 0x0D)
		if sectors_per_cluster_base == 0:
			raise BootSectorException('Invalid cluster size (zero)')

		if sectors_per_cluster_base <= 0x80: # Although 0x80 is a signed value, it's used as an unsigned one.
			return sectors_per_cluster_base

		sectors_per_cluster_base = self.read_field('b', 0x0D) # Read this again as a signed value.
		return 1 << abs(sectors_per_cluster_base)

	def get_cluster_size(self):
		"""Get and return the cluster size in bytes."""

		return self.get_bytes_per_sector() * self.get_sectors_per_cluster()

	def get_total_number_of_sectors(self):
		"""Get and return the total number of sectors."""

		return self.read_field('<Q', 0x28)

	def get_first_mft_cluster(self):
		"""Get and return the first cluster of the $MFT file."""

		return self.read_field('<Q', 0x30)

	def get_first_mftmirr_cluster(self):
		"""Get and return the first cluster of the $MFTMirr file (or None, if the boot sector is too short)."""

		return self.read_field('<Q', 0x38)

	def get_size_from_clusters_per_unit(self, offset):
		"""Decode a "clusters per unit" field (a positive number of clusters or a negative power of two), return the size in bytes."""

		size_base = self.read_field('b', offset)
		if size_base is None or size_base == 0: # Not declared.
			return

		if size_base > 0:
			return size_base * self.get_cluster_size()

		return 1 << abs(size_base)

	def get_file_record_segment_size(self):
		"""Get and return the file record segment (FRS) size in bytes (or None, if not declared).
		An unsupported size raises an exception (BootSectorException).
		"""

		frs_size = self.get_size_from_clusters_per_unit(0x40)
		if frs_size is not None and frs_size not in FILE_RECORD_SEGMENT_SIZES_SUPPORTED:
			raise BootSectorException('Invalid (unsupported) file record segment size: {}'.format(frs_size))

		return frs_size

	def get_index_record_size(self):
		"""Get and return the index record size in bytes (or None, if not declared)."""

		return self.get_size_from_clusters_per_unit(0x44)

	def get_serial_number(self):
		"""Get and return the volume serial number (as an integer, or None, if the boot sector is too short)."""

		return self.read_field('<Q', 0x48)

	def is_boot_code_present(self):
		"""Check if boot code is present. This is done by checking the first instruction and the boot signature."""

		return self.read_field('<H', 0) != 0 and self.read_field('<H', 510) == 0xAA55

	def get_info(self):
		"""Get and return the volume geometry (as a BootSectorInfo object)."""

		file_record_segment_size = self.get_file_record_segment_size()
		if file_record_segment_size is None:
			file_record_segment_size = DEFAULT_FILE_RECORD_SEGMENT_SIZE

		return BootSectorInfo(self.get_bytes_per_sector(), self.get_sectors_per_cluster(), self.get_first_mft_cluster(), file_record_segment_size)

	def __str__(self):
		return 'BootSector'

def ParseBootSector(Buffer):
	"""Parse a boot sector, return the volume geometry (as a BootSectorInfo object)."""

	return BootSector(Buffer).get_info()
