# mft_inspect: raw NTFS boot sector and $MFT record decoder
#
# This module implements an interface to work with file record segments in an $MFT file.

from . import Attributes
import struct
from collections import namedtuple

MULTI_SECTOR_HEADER_SIGNATURE_GOOD = b'FILE'
UPDATE_SEQUENCE_STRIDE = 512 # This is true even for 4Kn drives.
FILE_RECORD_SEGMENT_HEADER_SIZE = 42
FILE_RECORD_SEGMENT_HEADER_SIZE_EXTENDED = 48 # Since Windows XP, an $MFT number follows the header.

# Flags for the file record segment (FRS):
FILE_RECORD_SEGMENT_IN_USE = 1 # Is in use (allocated).
FILE_FILE_NAME_INDEX_PRESENT = 2 # Is a directory.

# Form codes for the attribute record:
FORM_CODE_RESIDENT = 0
FORM_CODE_NONRESIDENT = 1

FileRecordSegmentHeader = namedtuple('FileRecordSegmentHeader', [ 'signature', 'usa_offset', 'usa_size', 'logfile_sequence_number', 'sequence_number', 'reference_count', 'first_attribute_offset', 'flags', 'used_size', 'allocated_size', 'base_file_record_segment', 'next_attribute_instance' ])

class MasterFileTableException(Exception):
	"""This is a top-level exception for this module."""

	def __init__(self, value):
		self._value = value

	def __str__(self):
		return repr(self._value)

class FileRecordSegmentException(MasterFileTableException):
	"""This exception is raised when something is wrong with a file record segment (FRS)."""

	pass

class FileRecordSegmentSignatureException(FileRecordSegmentException):
	"""This exception is raised when a file record segment (FRS) does not have a valid signature (an unused or deleted slot)."""

	pass

class FileRecordSegmentTruncatedException(FileRecordSegmentException):
	"""This exception is raised when the sizes and offsets declared by a file record segment (FRS) do not fit into its buffer."""

	pass

class UpdateSequenceArrayException(FileRecordSegmentException):
	"""This exception is raised when a sector of a file record segment (FRS) does not carry the expected update sequence number (a torn write or corruption)."""

	pass

class AttributeException(FileRecordSegmentException):
	"""This exception is raised when a file record segment (FRS) contains an invalid attribute."""

	pass

class AttributeOutOfBoundsException(AttributeException):
	"""This exception is raised when an attribute record is empty or crosses the used part of a file record segment (FRS)."""

	pass

def DecodeFileRecordSegmentReference(ReferenceNumber):
	"""Decode a file record segment reference, return the (file_record_segment_number, sequence_number) tuple."""

	file_record_segment_number = ReferenceNumber & 0xFFFFFFFFFFFF
	sequence_number = ReferenceNumber >> 48

	return (file_record_segment_number, sequence_number)

def ResolveAttributeType(TypeCode):
	"""Convert a type code of an attribute to a string."""

	if TypeCode in Attributes.AttributeTypes.keys():
		return Attributes.AttributeTypes[TypeCode][0]

	return hex(TypeCode) # An unknown attribute.

def UnpackFileRecordSegmentHeader(Buffer):
	"""Unpack the first 42 bytes of the file record segment (FRS) header, return a FileRecordSegmentHeader object."""

	return FileRecordSegmentHeader._make(struct.unpack('<4sHHQHHHHLLQH', Buffer[ : FILE_RECORD_SEGMENT_HEADER_SIZE]))

class FileRecordSegment(object):
	"""This class is used to work with a file record segment (FRS)."""

	frs_data = None
	"""Data of a file record segment (FRS) with updates from an update sequence array (USA) applied (if requested)."""

	header = None
	"""A decoded header (FileRecordSegmentHeader)."""

	def __init__(self, file_record_segment_buf, apply_update_sequence_array = True):
		"""Create a FileRecordSegment object from bytes (the 'file_record_segment_buf' argument). Apply an update sequence array, if requested (the 'apply_update_sequence_array' argument)."""

		if len(file_record_segment_buf) < FILE_RECORD_SEGMENT_HEADER_SIZE:
			raise FileRecordSegmentTruncatedException('Truncated file record segment: {} bytes'.format(len(file_record_segment_buf)))

		self.frs_data = bytearray(file_record_segment_buf)

		signature = bytes(self.frs_data[ : 4])
		if signature != MULTI_SECTOR_HEADER_SIGNATURE_GOOD:
			raise FileRecordSegmentSignatureException('Invalid signature: {}'.format(signature))

		self.header = UnpackFileRecordSegmentHeader(self.frs_data)

		if apply_update_sequence_array:
			self.apply_update_sequence_array()

		self.validate_file_record_segment_header()

	def apply_update_sequence_array(self):
		"""Apply an update sequence array (USA) to a file record segment (FRS), return the number of updates applied.
		Each 512-byte stride covered by the array must end with the update sequence number, else an exception (UpdateSequenceArrayException) is raised.
		"""

		usa_offset = self.header.usa_offset
		usa_size = self.header.usa_size

		if usa_size == 0:
			return 0

		if usa_offset < FILE_RECORD_SEGMENT_HEADER_SIZE or usa_offset + usa_size * 2 > len(self.frs_data):
			raise FileRecordSegmentTruncatedException('Invalid update sequence array offset and size: {}, {}'.format(usa_offset, usa_size))

		if (usa_size - 1) * UPDATE_SEQUENCE_STRIDE > len(self.frs_data):
			raise FileRecordSegmentTruncatedException('Update sequence array covers {} bytes, the buffer holds {} bytes'.format((usa_size - 1) * UPDATE_SEQUENCE_STRIDE, len(self.frs_data)))

		sequence_number_in_usa_bytes = self.frs_data[usa_offset : usa_offset + 2]

		i = 1 # Skip the first element (sequence_number_in_usa_bytes).
		while i < usa_size:
			offset_in_usa = usa_offset + i * 2
			update_bytes = self.frs_data[offset_in_usa : offset_in_usa + 2]

			offset_in_frs = i * UPDATE_SEQUENCE_STRIDE - 2
			sequence_number_in_sector_bytes = self.frs_data[offset_in_frs : offset_in_frs + 2]

			if sequence_number_in_usa_bytes != sequence_number_in_sector_bytes:
				raise UpdateSequenceArrayException('Invalid sequence number in the file record segment, relative offset: {}'.format(offset_in_frs))

			self.frs_data[offset_in_frs : offset_in_frs + 2] = update_bytes

			i += 1

		return usa_size - 1

	def validate_file_record_segment_header(self):
		"""Validate the sizes declared by a file record segment (FRS) header. If they do not fit, an exception (FileRecordSegmentTruncatedException) is raised."""

		used_size = self.header.used_size
		allocated_size = self.header.allocated_size

		if used_size > len(self.frs_data):
			raise FileRecordSegmentTruncatedException('Used size exceeds the buffer: {} > {}'.format(used_size, len(self.frs_data)))

		if allocated_size > len(self.frs_data):
			raise FileRecordSegmentTruncatedException('Allocated size exceeds the buffer: {} > {}'.format(allocated_size, len(self.frs_data)))

		if used_size > allocated_size:
			raise FileRecordSegmentTruncatedException('Used size exceeds the allocated size: {} > {}'.format(used_size, allocated_size))

		# The first attribute follows the header and the update sequence array.
		first_attribute_offset = self.header.first_attribute_offset
		if first_attribute_offset < FILE_RECORD_SEGMENT_HEADER_SIZE or first_attribute_offset < self.header.usa_offset + self.header.usa_size * 2 or first_attribute_offset > used_size:
			raise FileRecordSegmentTruncatedException('Invalid offset to the first attribute: {}'.format(first_attribute_offset))

	def get_logfile_sequence_number(self):
		"""Get and return a log file sequence number (LSN)."""

		return self.header.logfile_sequence_number

	def get_sequence_number(self):
		"""Get and return a sequence number."""

		return self.header.sequence_number

	def get_reference_count(self):
		"""Get and return a reference count (the number of hard links)."""

		return self.header.reference_count

	def get_first_attribute_offset(self):
		"""Get and return a relative offset to the first attribute."""

		return self.header.first_attribute_offset

	def get_flags(self):
		"""Get and return flags (as a number)."""

		return self.header.flags

	def is_in_use(self):
		"""Check if a file record segment (FRS) is in use (according to its flags)."""

		return self.get_flags() & FILE_RECORD_SEGMENT_IN_USE > 0

	def is_directory(self):
		"""Check if a file record segment (FRS) describes a directory (according to its flags)."""

		return self.get_flags() & FILE_FILE_NAME_INDEX_PRESENT > 0

	def get_first_free_byte_offset(self):
		"""Get and return a relative offset to the first free byte (the used size)."""

		return self.header.used_size

	def get_file_record_segment_size(self):
		"""Get and return a size of this file record segment (FRS), the allocated size."""

		return self.header.allocated_size

	def get_base_file_record_segment(self):
		"""Get and return a reference to a base file record segment (a base FRS)."""

		return self.header.base_file_record_segment

	def is_base_file_record_segment(self):
		"""Check if a file record segment (FRS) is a base one."""

		return self.get_base_file_record_segment() == 0

	def get_next_attribute_instance(self):
		"""Get an attribute instance number to be used for a new allocation and return it."""

		return self.header.next_attribute_instance

	def get_master_file_table_number(self):
		"""Get an $MFT number for this file record segment (FRS) and return it (or None, if the header does not hold it)."""

		# The extended header is present only if the update sequence array starts after it.
		if self.header.usa_offset < FILE_RECORD_SEGMENT_HEADER_SIZE_EXTENDED:
			return

		# This is a 48-bit integer, the higher part (16 bits) is stored in the lower bytes.
		mft_number_hi, mft_number_lo = struct.unpack('<HL', self.frs_data[42 : 48])
		return (mft_number_hi << 32) | mft_number_lo

	def attributes(self):
		"""This method yields each attribute record (AttributeRecord) of this file record segment (FRS).
		The walk stops at the end marker or at the used size. An empty attribute record or an attribute record crossing the used size raises an exception (AttributeOutOfBoundsException).
		"""

		used_size = self.header.used_size

		pos = self.header.first_attribute_offset
		while pos < used_size:
			if pos + 4 > used_size:
				raise AttributeOutOfBoundsException('Unexpected end of the file record segment, attribute offset: {}'.format(pos))

			type_code, = struct.unpack('<L', self.frs_data[pos : pos + 4])
			if type_code == Attributes.ATTR_TYPE_END: # Stop here.
				break

			if pos + 8 > used_size:
				raise AttributeOutOfBoundsException('Unexpected end of the file record segment, attribute offset: {}'.format(pos))

			record_length, = struct.unpack('<L', self.frs_data[pos + 4 : pos + 8])
			if record_length == 0 or pos + record_length > used_size:
				raise AttributeOutOfBoundsException('Invalid record length within the attribute header: {}, attribute offset: {}'.format(record_length, pos))

			yield AttributeRecord(type_code, pos, bytes(self.frs_data[pos : pos + record_length]))

			pos += record_length

	def __str__(self):
		if self.is_in_use():
			is_in_use_str = 'allocated'
		else:
			is_in_use_str = 'unallocated'

		if self.is_base_file_record_segment():
			is_base_frs_str = 'base'
		else:
			is_base_frs_str = 'child'

		return 'FileRecordSegment, $MFT number: {}, {}, {}'.format(self.get_master_file_table_number(), is_in_use_str, is_base_frs_str)

class AttributeRecord(object):
	"""This class is used to work with an attribute record (as found by the walk, the header is not validated beyond its length)."""

	type_code = None
	"""A type code of this attribute record."""

	offset = None
	"""A relative offset of this attribute record in a file record segment (FRS)."""

	record = None
	"""This attribute record as raw bytes (the header included)."""

	def __init__(self, type_code, offset, record):
		self.type_code = type_code
		self.offset = offset
		self.record = record

	@property
	def record_length(self):
		"""A length of this attribute record (in bytes)."""

		return len(self.record)

	def get_form_code(self):
		"""Get and return the form code (or None, if the record is too short to hold it)."""

		if len(self.record) > 8:
			return self.record[8]

	def is_resident(self):
		"""Check if this attribute record is resident."""

		return self.get_form_code() == FORM_CODE_RESIDENT

	def type_str(self):
		"""Resolve a type code to a string and return it."""

		return ResolveAttributeType(self.type_code)

	def value_decoded(self):
		"""Return a decoded value (as an object from the Attributes module), or None for an attribute type without a decoder or for a nonresident attribute record.
		A truncated attribute record raises an exception (Attributes.AttributeTruncatedException).
		"""

		if self.type_code not in Attributes.AttributeTypes.keys():
			return

		decoder = Attributes.AttributeTypes[self.type_code][1]
		if decoder is None or not self.is_resident():
			return

		return decoder(self.record)

	def __str__(self):
		return 'AttributeRecord, type: {}, offset: {}, length: {}'.format(self.type_str(), self.offset, self.record_length)
