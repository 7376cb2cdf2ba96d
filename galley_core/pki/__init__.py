from galley_core.pki.authority import (
    CaSignedAuthority,
    CertificateAuthority,
    IssuedCertificate,
    SelfSignedAuthority,
    certificate_serial,
    generate_ca,
    load_authority,
)
from galley_core.pki.barcode import render_qr_png
from galley_core.pki.bundle import (
    ProvisioningBundle,
    build_bundle,
    bundle_filename,
    bundle_url,
)

__all__ = [
    "CaSignedAuthority",
    "CertificateAuthority",
    "IssuedCertificate",
    "ProvisioningBundle",
    "SelfSignedAuthority",
    "build_bundle",
    "bundle_filename",
    "bundle_url",
    "certificate_serial",
    "generate_ca",
    "load_authority",
    "render_qr_png",
]
