"""
Catalog lookups: abstract image names and size classes to Azure values.
"""

from typing import Dict, Mapping, Optional

from errors import UnknownCatalogEntryError

DEFAULT_IMAGES: Dict[str, Dict[str, str]] = {
    "ubuntu_16_04": {
        "publisher": "Canonical",
        "offer": "UbuntuServer",
        "sku": "16.04-LTS",
        "version": "latest",
    },
    "ubuntu_20_04": {
        "publisher": "Canonical",
        "offer": "0001-com-ubuntu-server-focal",
        "sku": "20_04-lts-gen2",
        "version": "latest",
    },
    "ubuntu_22_04": {
        "publisher": "Canonical",
        "offer": "0001-com-ubuntu-server-jammy",
        "sku": "22_04-lts-gen2",
        "version": "latest",
    },
    "centos_7": {
        "publisher": "OpenLogic",
        "offer": "CentOS",
        "sku": "7.5",
        "version": "latest",
    },
}

DEFAULT_TIERS: Dict[str, str] = {
    "Basic_A1": "Basic",
    "Basic_A2": "Basic",
    "Standard_B2s": "Standard",
    "Standard_DS1_v2": "Standard",
    "Standard_DS2_v2": "Standard",
    "Standard_D2s_v3": "Standard",
    "Standard_D4s_v3": "Standard",
}

_IMAGE_KEYS = ("publisher", "offer", "sku", "version")


class Catalog:
    """Maps abstract image names and size classes to provider values."""

    def __init__(
        self,
        images: Optional[Mapping[str, Mapping[str, str]]] = None,
        tiers: Optional[Mapping[str, str]] = None,
    ):
        self.images = dict(DEFAULT_IMAGES if images is None else images)
        self.tiers = dict(DEFAULT_TIERS if tiers is None else tiers)

    def image_reference(self, image: str) -> Dict[str, str]:
        """
        Look up the Azure image reference for an abstract image name.

        Raises:
            UnknownCatalogEntryError: If the image has no mapping
        """
        try:
            return dict(self.images[image])
        except KeyError:
            raise UnknownCatalogEntryError(f"Unknown image '{image}'") from None

    def tier(self, size: str) -> str:
        """
        Look up the capacity tier for a size class.

        Raises:
            UnknownCatalogEntryError: If the size has no mapping
        """
        try:
            return self.tiers[size]
        except KeyError:
            raise UnknownCatalogEntryError(f"Unknown size '{size}'") from None

    def image_name(self, reference: Optional[Mapping[str, str]]) -> str:
        """Reverse lookup of an observed image reference; "" when not in the catalog."""
        if not reference:
            return ""
        observed = tuple(str(reference.get(k, "")).lower() for k in _IMAGE_KEYS)
        for name, ref in self.images.items():
            if tuple(str(ref.get(k, "")).lower() for k in _IMAGE_KEYS) == observed:
                return name
        return ""
