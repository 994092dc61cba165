"""PIR (Passive Infrared) motion sensor (HC-SR501 / AM312).

How it works:
  The sensor has two IR-sensitive slots. When a warm body (person, animal)
  moves across its field of view, one slot sees more IR than the other,
  creating a voltage difference that triggers the digital output.

Near the edge of the detection range the output flickers; the presence
state machine turns that flicker into one sustained "occupied" signal
with a 10 s hold, so the sensor's own hold-time pot can stay short.

Hardware: Digital output pin goes HIGH on motion (configurable).
"""

from gpiod.line import Bias

from sensors.digital import DigitalInput


class PIRSensor(DigitalInput):
    BIAS = Bias.PULL_DOWN
