# mft_inspect: raw NTFS boot sector and $MFT record decoder
#
# This module implements an interface to scan the first file record segments of an $MFT file in a volume.

from . import Attributes, BootSector, MFT
import logging
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)

DEFAULT_RECORD_COUNT = 50
RECORDS_PER_READ = 1024

# Status values for a scanned record:
RECORD_GOOD = 'good' # All attributes walked.
RECORD_UNUSED = 'unused' # No valid signature (an unused or deleted slot).
RECORD_SUSPECT = 'suspect' # The update sequence array does not match, attributes are not decoded.
RECORD_MALFORMED = 'malformed' # The header declares sizes which do not fit.
RECORD_PARTIAL = 'partial' # The attribute walk stopped at an invalid attribute record.

class DecodedAttribute(object):
	"""This class is used to describe an attribute record found in a scanned record, with its decoded value (if any)."""

	attribute = None
	"""An attribute record (MFT.AttributeRecord)."""

	value = None
	"""A decoded value (Attributes.StandardInformation, Attributes.FileName) or None."""

	error = None
	"""An exception raised when decoding the value, or None."""

	def __init__(self, attribute, value, error = None):
		self.attribute = attribute
		self.value = value
		self.error = error

	def __str__(self):
		return 'DecodedAttribute, type: {}, decoded: {}'.format(self.attribute.type_str(), self.value is not None)

class ScannedRecord(object):
	"""This class is used to describe the outcome of decoding a single file record segment (FRS)."""

	number = None
	"""A file record segment number (its position in the $MFT file)."""

	status = None
	"""A status (one of the RECORD_* values)."""

	frs = None
	"""A file record segment (MFT.FileRecordSegment), or None if the header cannot be trusted."""

	attributes = None
	"""A list of decoded attributes (DecodedAttribute)."""

	error = None
	"""An exception which stopped decoding this record, or None."""

	def __init__(self, number, status, frs = None, attributes = None, error = None):
		self.number = number
		self.status = status
		self.frs = frs
		self.attributes = attributes if attributes is not None else []
		self.error = error

	def is_good(self):
		"""Check if all attributes of this record were walked."""

		return self.status == RECORD_GOOD

	def standard_information(self):
		"""This method yields each decoded $STANDARD_INFORMATION attribute of this record."""

		for decoded_attribute in self.attributes:
			if type(decoded_attribute.value) is Attributes.StandardInformation:
				yield decoded_attribute.value

	def file_names(self):
		"""This method yields each decoded $FILE_NAME attribute of this record."""

		for decoded_attribute in self.attributes:
			if type(decoded_attribute.value) is Attributes.FileName:
				yield decoded_attribute.value

	def __str__(self):
		return 'ScannedRecord, number: {}, status: {}, attributes: {}'.format(self.number, self.status, len(self.attributes))

def DecodeAttribute(Attribute):
	"""Decode the value of an attribute record, return a DecodedAttribute object. A truncated value is reported, not raised."""

	try:
		value = Attribute.value_decoded()
	except Attributes.AttributeTruncatedException as e:
		logger.debug('Truncated attribute %s at offset %d: %s', Attribute.type_str(), Attribute.offset, e)
		return DecodedAttribute(Attribute, None, e)

	return DecodedAttribute(Attribute, value)

def DecodeRecord(Number, Buffer, ApplyUpdateSequenceArray = True):
	"""Decode a file record segment (FRS) buffer, return a ScannedRecord object. Malformed data is reported in the returned object, never raised."""

	try:
		frs = MFT.FileRecordSegment(Buffer, ApplyUpdateSequenceArray)
	except MFT.FileRecordSegmentSignatureException as e:
		logger.debug('Record %d is unused: %s', Number, e)
		return ScannedRecord(Number, RECORD_UNUSED, error = e)
	except MFT.UpdateSequenceArrayException as e:
		logger.debug('Record %d is suspect: %s', Number, e)
		return ScannedRecord(Number, RECORD_SUSPECT, error = e)
	except MFT.FileRecordSegmentException as e:
		logger.debug('Record %d is malformed: %s', Number, e)
		return ScannedRecord(Number, RECORD_MALFORMED, error = e)

	decoded_attributes = []
	try:
		for attribute in frs.attributes():
			decoded_attributes.append(DecodeAttribute(attribute))
	except MFT.AttributeException as e:
		logger.debug('Record %d has an invalid attribute: %s', Number, e)
		return ScannedRecord(Number, RECORD_PARTIAL, frs, decoded_attributes, e)

	return ScannedRecord(Number, RECORD_GOOD, frs, decoded_attributes)

class MasterFileTableScanner(object):
	"""This class is used to read and decode the first file record segments of an $MFT file, using a sector reader (Volume.SectorReader)."""

	sector_reader = None
	"""A sector reader for a volume."""

	boot_info = None
	"""Volume geometry (BootSector.BootSectorInfo)."""

	max_records = None
	"""A maximum number of file record segments to be scanned."""

	record_size = None
	"""A size of each file record segment (FRS), in bytes."""

	workers = None
	"""A number of worker threads used to decode file record segments."""

	apply_update_sequence_array = None
	"""Apply update sequence arrays to file record segments (or not)."""

	def __init__(self, sector_reader, max_records = DEFAULT_RECORD_COUNT, record_size = None, workers = 1, apply_update_sequence_array = True):
		"""Create a MasterFileTableScanner object: read and parse the boot sector. An I/O error (Volume.SectorReaderException) or an invalid boot sector (BootSector.BootSectorException) is raised."""

		if max_records < 0:
			raise ValueError('Invalid number of records: {}'.format(max_records))

		if workers < 1:
			raise ValueError('Invalid number of workers: {}'.format(workers))

		self.sector_reader = sector_reader
		self.max_records = max_records
		self.workers = workers
		self.apply_update_sequence_array = apply_update_sequence_array

		boot_buf = self.sector_reader.read_sectors(0, 1, BootSector.BOOT_SECTOR_SIZE)
		self.boot_info = BootSector.ParseBootSector(boot_buf)

		if record_size is None:
			record_size = self.boot_info.file_record_segment_size

		if record_size < MFT.FILE_RECORD_SEGMENT_HEADER_SIZE:
			raise ValueError('Invalid record size: {}'.format(record_size))

		self.record_size = record_size

		logger.info('Sector size: %d, sectors per cluster: %d, $MFT starts at sector: %d, record size: %d', self.boot_info.sector_size, self.boot_info.sectors_per_cluster, self.boot_info.mft_start_sector, self.record_size)

	def read_records(self, first_record, count):
		"""Read 'count' file record segments starting at 'first_record', return a list of buffers (one per record)."""

		sector_size = self.boot_info.sector_size

		start_offset = first_record * self.record_size
		end_offset = start_offset + count * self.record_size

		start_sector = start_offset // sector_size
		end_sector = (end_offset + sector_size - 1) // sector_size # Round up.

		buf = self.sector_reader.read_sectors(self.boot_info.mft_start_sector + start_sector, end_sector - start_sector, sector_size)

		skip = start_offset - start_sector * sector_size
		return [ buf[skip + i * self.record_size : skip + (i + 1) * self.record_size] for i in range(count) ]

	def records(self):
		"""This method yields a ScannedRecord object for each of the first file record segments, in order.
		Only I/O errors (Volume.SectorReaderException) are raised. A caller can stop iterating at any time.
		"""

		executor = None
		if self.workers > 1:
			executor = ThreadPoolExecutor(max_workers = self.workers)

		try:
			first_record = 0
			while first_record < self.max_records:
				count = min(RECORDS_PER_READ, self.max_records - first_record)
				buffers = self.read_records(first_record, count)
				numbers = range(first_record, first_record + count)

				if executor is None:
					for number, buf in zip(numbers, buffers):
						yield DecodeRecord(number, buf, self.apply_update_sequence_array)
				else:
					for scanned_record in executor.map(DecodeRecord, numbers, buffers, [ self.apply_update_sequence_array ] * count):
						yield scanned_record

				first_record += count
		finally:
			if executor is not None:
				executor.shutdown(wait = True)

	def __str__(self):
		return 'MasterFileTableScanner, $MFT sector: {}, records: {}'.format(self.boot_info.mft_start_sector, self.max_records)
