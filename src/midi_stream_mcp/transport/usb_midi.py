"""USB-MIDI class-compliant device transport.

USB carries MIDI as 4-byte event packets on a pair of bulk endpoints of
the MIDI Streaming interface (class 0x01, subclass 0x03)::

    +-----------------+----------+----------+----------+
    | Cable | CIN     |  MIDI_0  |  MIDI_1  |  MIDI_2  |
    | 4 bits| 4 bits  |  1 byte  |  1 byte  |  1 byte  |
    +-----------------+----------+----------+----------+

- CIN (Code Index Number) tells how many of the three MIDI bytes are valid
- Unused trailing MIDI bytes are zero

Incoming packets are flattened back into the raw byte stream the decoder
expects. Outgoing bytes are sent as CIN 0xF single-byte packets, so what
reaches the wire is exactly what the encoder produced, running status and
all.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

import usb.core
import usb.util

logger = logging.getLogger(__name__)

AUDIO_CLASS = 0x01
MIDI_STREAMING_SUBCLASS = 0x03
PACKET_SIZE = 4
CIN_SINGLE_BYTE = 0x0F
READ_TIMEOUT_MS = 1
WRITE_TIMEOUT_MS = 1000

# Valid MIDI bytes per Code Index Number (0x0/0x1 are reserved)
CIN_LENGTHS = {
    0x2: 2,  # two-byte system common
    0x3: 3,  # three-byte system common
    0x4: 3,  # sysex starts or continues
    0x5: 1,  # single-byte system common, or sysex ends with one byte
    0x6: 2,  # sysex ends with two bytes
    0x7: 3,  # sysex ends with three bytes
    0x8: 3,  # note off
    0x9: 3,  # note on
    0xA: 3,  # poly key pressure
    0xB: 3,  # control change
    0xC: 2,  # program change
    0xD: 2,  # channel pressure
    0xE: 3,  # pitch bend
    0xF: 1,  # single byte
}


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = 0
    product_id: int = 0
    manufacturer: str = ""
    product: str = ""


def unpack_event_packets(data: bytes, cable: int | None = None) -> bytes:
    """Flatten USB-MIDI event packets into a raw MIDI byte stream.

    Args:
        data: Concatenated 4-byte packets; a trailing partial packet is dropped.
        cable: Keep only packets for this virtual cable, or all if None.
    """
    out = bytearray()
    for offset in range(0, len(data) - PACKET_SIZE + 1, PACKET_SIZE):
        header = data[offset]
        if cable is not None and header >> 4 != cable:
            continue
        length = CIN_LENGTHS.get(header & 0x0F, 0)
        out += data[offset + 1 : offset + 1 + length]
    return bytes(out)


def pack_single_bytes(data: bytes, cable: int = 0) -> bytes:
    """Wrap each byte of ``data`` in its own CIN 0xF event packet."""
    header = ((cable & 0x0F) << 4) | CIN_SINGLE_BYTE
    out = bytearray()
    for byte in data:
        out += bytes([header, byte & 0xFF, 0, 0])
    return bytes(out)


def _has_midi_streaming(dev) -> bool:
    for cfg in dev:
        intf = usb.util.find_descriptor(
            cfg,
            bInterfaceClass=AUDIO_CLASS,
            bInterfaceSubClass=MIDI_STREAMING_SUBCLASS,
        )
        if intf is not None:
            return True
    return False


class USBMidiConnection:
    """Byte transport over a USB-MIDI device.

    Usage::

        conn = USBMidiConnection()
        conn.open()
        conn.write_byte(0xF8)
        byte = conn.try_read_byte()
        conn.close()
    """

    def __init__(
        self,
        vendor_id: int | None = None,
        product_id: int | None = None,
        cable: int = 0,
        read_timeout_ms: int = READ_TIMEOUT_MS,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._cable = cable
        self._read_timeout_ms = read_timeout_ms
        self._device = None
        self._interface_number: int | None = None
        self._ep_in = None
        self._ep_out = None
        self._rx: deque[int] = deque()
        self._connected = False
        self._device_info = DeviceInfo()

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def open(self) -> DeviceInfo:
        """Find, claim and open the first matching USB-MIDI interface.

        Returns:
            DeviceInfo with USB descriptor information.

        Raises:
            ConnectionError: If no device is found or it cannot be claimed.
        """
        if self._vendor_id is not None:
            dev = usb.core.find(idVendor=self._vendor_id, idProduct=self._product_id)
        else:
            dev = usb.core.find(custom_match=_has_midi_streaming)
        if dev is None:
            raise ConnectionError(
                "No USB-MIDI device found. Ensure the device is connected "
                "and you have permissions."
            )

        try:
            self._claim(dev)
        except usb.core.USBError as e:
            raise ConnectionError(
                f"Could not open USB-MIDI device "
                f"({dev.idVendor:#06x}:{dev.idProduct:#06x}): {e}"
            ) from e

        self._device_info = DeviceInfo(
            vendor_id=dev.idVendor,
            product_id=dev.idProduct,
            manufacturer=_get_string(dev, dev.iManufacturer),
            product=_get_string(dev, dev.iProduct),
        )
        logger.info(
            "Connected to USB-MIDI device: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def _claim(self, dev) -> None:
        try:
            cfg = dev.get_active_configuration()
        except usb.core.USBError:
            dev.set_configuration()
            cfg = dev.get_active_configuration()

        intf = usb.util.find_descriptor(
            cfg,
            bInterfaceClass=AUDIO_CLASS,
            bInterfaceSubClass=MIDI_STREAMING_SUBCLASS,
        )
        if intf is None:
            raise ConnectionError("Device has no MIDI Streaming interface")

        number = intf.bInterfaceNumber
        # Detach kernel driver if needed
        if dev.is_kernel_driver_active(number):
            dev.detach_kernel_driver(number)
        usb.util.claim_interface(dev, number)

        self._ep_in = usb.util.find_descriptor(
            intf,
            custom_match=lambda e: usb.util.endpoint_direction(e.bEndpointAddress)
            == usb.util.ENDPOINT_IN,
        )
        self._ep_out = usb.util.find_descriptor(
            intf,
            custom_match=lambda e: usb.util.endpoint_direction(e.bEndpointAddress)
            == usb.util.ENDPOINT_OUT,
        )
        if self._ep_in is None or self._ep_out is None:
            usb.util.release_interface(dev, number)
            raise ConnectionError("MIDI Streaming interface is missing a bulk endpoint")

        self._device = dev
        self._interface_number = number
        self._rx.clear()
        self._connected = True

    def close(self) -> None:
        """Release the interface and close the connection."""
        if not self._connected:
            return

        try:
            usb.util.release_interface(self._device, self._interface_number)
            usb.util.dispose_resources(self._device)
        except usb.core.USBError as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._ep_in = None
            self._ep_out = None
            self._connected = False
            logger.info("Disconnected")

    def try_read_byte(self) -> int | None:
        """Return the next received MIDI byte, or None if nothing is waiting.

        Raises:
            ConnectionError: If not connected.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")

        if not self._rx:
            self._fill()
        if not self._rx:
            return None
        return self._rx.popleft()

    def _fill(self) -> None:
        try:
            data = self._ep_in.read(self._ep_in.wMaxPacketSize, timeout=self._read_timeout_ms)
        except usb.core.USBTimeoutError:
            return
        except usb.core.USBError as e:
            logger.debug("Read error: %s", e)
            return
        self._rx.extend(unpack_event_packets(bytes(data), self._cable))

    def write_byte(self, byte: int) -> None:
        """Send one MIDI byte as a single-byte event packet.

        Raises:
            ConnectionError: If not connected.
        """
        self.write(bytes([byte & 0xFF]))

    def write(self, data: bytes) -> int:
        """Send several MIDI bytes in one transfer. Returns bytes written on the bus."""
        if not self._connected:
            raise ConnectionError("Not connected to device")
        return self._ep_out.write(
            pack_single_bytes(data, self._cable), timeout=WRITE_TIMEOUT_MS
        )


def _get_string(dev, index: int) -> str:
    if not index:
        return ""
    try:
        return usb.util.get_string(dev, index) or ""
    except (usb.core.USBError, ValueError) as e:
        logger.debug("Could not read string descriptor %d: %s", index, e)
        return ""
