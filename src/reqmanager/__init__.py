"""reqmanager: CertificateRequest lifecycle controller.

Drives the CertificateRequest children of declared Certificates toward
consistency with the Certificate spec and its next private key.
"""

__version__ = "0.1.0"
