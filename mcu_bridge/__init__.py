# mcu_bridge: serial bridge between the motion/sensor layer and the rover microcontroller.
__version__ = "0.1.0"
