# mft_inspect: raw NTFS boot sector and $MFT record decoder

__version__ = '1.0.0'
__all__ = [ 'MFT', 'Attributes', 'BootSector', 'Volume', 'Scanner' ]
