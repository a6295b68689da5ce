"""Protocol layer: status bytes, typed messages, decoder, encoder and dispatch."""

from .status import Status
from .messages import MidiMessage, MESSAGE_CLASSES, message_from_dict
from .dispatch import MidiHandler, ProprietarySink, dispatch
from .decoder import Decoder, DecoderState, transition
from .encoder import Encoder
