# mft_inspect: raw NTFS boot sector and $MFT record decoder
#
# This module implements an interface to work with attributes.

import struct
import datetime

# Attributes and their codes:
ATTR_TYPE_STANDARD_INFORMATION = 0x10
ATTR_TYPE_ATTRIBUTE_LIST = 0x20
ATTR_TYPE_FILE_NAME = 0x30
ATTR_TYPE_OBJECT_ID = 0x40
ATTR_TYPE_SECURITY_DESCRIPTOR = 0x50
ATTR_TYPE_VOLUME_NAME = 0x60
ATTR_TYPE_VOLUME_INFORMATION = 0x70
ATTR_TYPE_DATA = 0x80
ATTR_TYPE_INDEX_ROOT = 0x90
ATTR_TYPE_INDEX_ALLOCATION = 0xA0
ATTR_TYPE_BITMAP = 0xB0
ATTR_TYPE_REPARSE_POINT = 0xC0
ATTR_TYPE_EA_INFORMATION = 0xD0
ATTR_TYPE_EA = 0xE0
ATTR_TYPE_LOGGED_UTILITY_STREAM = 0x100
ATTR_TYPE_END = 0xFFFFFFFF

# Flags for the $FILE_NAME attribute:
FILE_NAME_NTFS = 1 # A Win32 name space.
FILE_NAME_DOS = 2 # A DOS name space.

# All offsets below are relative to the start of a resident attribute record (its 24-byte header included).
RESIDENT_HEADER_SIZE = 24

STANDARD_INFORMATION_MIN_SIZE = 56
STANDARD_INFORMATION_FILE_ATTRIBUTES_OFFSET = 56

FILE_NAME_LENGTH_OFFSET = 88
FILE_NAME_FLAGS_OFFSET = 89
FILE_NAME_OFFSET = 90

# The difference between 1601-01-01 and 1970-01-01 (in seconds).
EPOCH_DIFFERENCE = 11644473600
TICKS_PER_SECOND = 10000000

UNIX_EPOCH = datetime.datetime(1970, 1, 1)
MAXIMUM_SECONDS = int((datetime.datetime.max - UNIX_EPOCH).total_seconds())

class AttributesException(Exception):
	"""This is a top-level exception for this module."""

	def __init__(self, value):
		self._value = value

	def __str__(self):
		return repr(self._value)

class AttributeTruncatedException(AttributesException):
	"""This exception is raised when an attribute record is too short for the fields it declares."""

	pass

class TimestampException(AttributesException):
	"""This exception is raised when a timestamp cannot be converted to a calendar time."""

	pass

def DecodeTimestamp(Timestamp, DoNotRaise = True):
	"""Decode the NTFS timestamp (100-nanosecond intervals since 1601-01-01, UTC) and return the datetime object (UTC, with a one-second resolution).
	Timestamps before 1970-01-01 are treated as invalid. If the 'DoNotRaise' argument is True, None is returned for an invalid timestamp, else TimestampException is raised.
	"""

	seconds = Timestamp // TICKS_PER_SECOND - EPOCH_DIFFERENCE
	if seconds < 0:
		if not DoNotRaise:
			raise TimestampException('Timestamp is before 1970-01-01: {}'.format(Timestamp))

		return

	if seconds > MAXIMUM_SECONDS:
		if not DoNotRaise:
			raise TimestampException('Timestamp is too large: {}'.format(Timestamp))

		return

	return UNIX_EPOCH + datetime.timedelta(seconds = seconds)

def ReadTimestamps(Record, Offset):
	"""Unpack four consecutive timestamps starting at a given offset, return a tuple of integers."""

	return struct.unpack('<QQQQ', Record[Offset : Offset + 32])

class GenericAttribute(object):
	"""This class is used to describe a generic resident attribute record."""

	record = None
	"""This attribute record as raw bytes (the header included)."""

	def __init__(self, record):
		self.record = record

class TimestampsMixin(object):
	"""This class holds four timestamps (C, M, E, A) common to $STANDARD_INFORMATION and $FILE_NAME."""

	timestamp_names = [ 'creation_time', 'modification_time', 'mft_change_time', 'last_access_time' ]

	raw_timestamps = None
	"""A tuple of four raw timestamps (as integers): C, M, E, A."""

	def get_raw_ctime(self):
		"""Get and return the raw C (file created) timestamp."""

		return self.raw_timestamps[0]

	def get_ctime(self):
		"""Get, decode and return the C (file created) timestamp."""

		return DecodeTimestamp(self.raw_timestamps[0])

	def get_raw_mtime(self):
		"""Get and return the raw M (file modified) timestamp."""

		return self.raw_timestamps[1]

	def get_mtime(self):
		"""Get, decode and return the M (file modified) timestamp."""

		return DecodeTimestamp(self.raw_timestamps[1])

	def get_raw_etime(self):
		"""Get and return the raw E ($MFT entry modified) timestamp."""

		return self.raw_timestamps[2]

	def get_etime(self):
		"""Get, decode and return the E ($MFT entry modified) timestamp."""

		return DecodeTimestamp(self.raw_timestamps[2])

	def get_raw_atime(self):
		"""Get and return the raw A (file last accessed) timestamp."""

		return self.raw_timestamps[3]

	def get_atime(self):
		"""Get, decode and return the A (file last accessed) timestamp."""

		return DecodeTimestamp(self.raw_timestamps[3])

	def get_timestamps(self):
		"""Get, decode and return all four timestamps as a dictionary (name -> datetime object or None)."""

		return dict(zip(self.timestamp_names, [ DecodeTimestamp(timestamp) for timestamp in self.raw_timestamps ]))

	def get_invalid_timestamps(self):
		"""Return a list of timestamp names that cannot be decoded."""

		invalid_timestamps = []
		for name, timestamp in zip(self.timestamp_names, self.raw_timestamps):
			if DecodeTimestamp(timestamp) is None:
				invalid_timestamps.append(name)

		return invalid_timestamps

class StandardInformation(GenericAttribute, TimestampsMixin):
	"""$STANDARD_INFORMATION."""

	def __init__(self, record):
		if len(record) < STANDARD_INFORMATION_MIN_SIZE:
			raise AttributeTruncatedException('$STANDARD_INFORMATION is too short: {} bytes'.format(len(record)))

		GenericAttribute.__init__(self, record)
		self.raw_timestamps = ReadTimestamps(record, RESIDENT_HEADER_SIZE)

	def get_file_attributes(self):
		"""Get and return the file attributes (as an integer), or None if the record does not hold them."""

		data = self.record[STANDARD_INFORMATION_FILE_ATTRIBUTES_OFFSET : STANDARD_INFORMATION_FILE_ATTRIBUTES_OFFSET + 4]
		if len(data) == 4:
			return struct.unpack('<L', data)[0]

	def __str__(self):
		return 'StandardInformation, created: {}'.format(self.get_ctime())

class FileName(GenericAttribute, TimestampsMixin):
	"""$FILE_NAME."""

	def __init__(self, record):
		if len(record) < FILE_NAME_OFFSET:
			raise AttributeTruncatedException('$FILE_NAME is too short: {} bytes'.format(len(record)))

		file_name_length = record[FILE_NAME_LENGTH_OFFSET]
		if len(record) < FILE_NAME_OFFSET + file_name_length * 2:
			raise AttributeTruncatedException('$FILE_NAME is too short for the file name: {} bytes, {} characters'.format(len(record), file_name_length))

		GenericAttribute.__init__(self, record)
		self.raw_timestamps = ReadTimestamps(record, RESIDENT_HEADER_SIZE + 8)

	def get_parent_directory(self):
		"""Get and return the file reference to a parent directory."""

		return struct.unpack('<Q', self.record[RESIDENT_HEADER_SIZE : RESIDENT_HEADER_SIZE + 8])[0]

	def get_file_name_length(self):
		"""Get and return the file name length in characters."""

		return self.record[FILE_NAME_LENGTH_OFFSET]

	def get_flags(self):
		"""Get and return the flags (the name space, as an integer) for this file name."""

		return self.record[FILE_NAME_FLAGS_OFFSET]

	def is_dos_name(self):
		"""Check if this is a DOS-only (short) file name."""

		return self.get_flags() == FILE_NAME_DOS

	def get_file_name(self):
		"""Get, decode and return the file name."""

		filename_raw = bytes(self.record[FILE_NAME_OFFSET : FILE_NAME_OFFSET + 2 * self.get_file_name_length()])
		return filename_raw.decode('utf-16le', errors = 'replace')

	def __str__(self):
		return 'FileName, name: {}'.format(self.get_file_name())

# Attribute types: code -> (name, decoder).
AttributeTypes = {
	ATTR_TYPE_STANDARD_INFORMATION: ('$STANDARD_INFORMATION', StandardInformation),
	ATTR_TYPE_ATTRIBUTE_LIST: ('$ATTRIBUTE_LIST', None),
	ATTR_TYPE_FILE_NAME: ('$FILE_NAME', FileName),
	ATTR_TYPE_OBJECT_ID: ('$OBJECT_ID', None),
	ATTR_TYPE_SECURITY_DESCRIPTOR: ('$SECURITY_DESCRIPTOR', None),
	ATTR_TYPE_VOLUME_NAME: ('$VOLUME_NAME', None),
	ATTR_TYPE_VOLUME_INFORMATION: ('$VOLUME_INFORMATION', None),
	ATTR_TYPE_DATA: ('$DATA', None),
	ATTR_TYPE_INDEX_ROOT: ('$INDEX_ROOT', None),
	ATTR_TYPE_INDEX_ALLOCATION: ('$INDEX_ALLOCATION', None),
	ATTR_TYPE_BITMAP: ('$BITMAP', None),
	ATTR_TYPE_REPARSE_POINT: ('$REPARSE_POINT', None),
	ATTR_TYPE_EA_INFORMATION: ('$EA_INFORMATION', None),
	ATTR_TYPE_EA: ('$EA', None),
	ATTR_TYPE_LOGGED_UTILITY_STREAM: ('$LOGGED_UTILITY_STREAM', None)
}
