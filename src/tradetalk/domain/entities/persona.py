"""Persona entity."""

from enum import Enum


class Persona(Enum):
    """Coarse behavioral profile assigned to a user by the persona classifier.

    - STREAMLINER: wants brief, action-focused answers.
    - NAVIGATOR: wants analytical detail.
    - HUB: manages several entities and thinks in networks.
    - SPRING: least experienced, learning oriented.
    - PROCESSOR: operations focused, prefers structured key/value output.
    """

    STREAMLINER = "streamliner"
    NAVIGATOR = "navigator"
    HUB = "hub"
    SPRING = "spring"
    PROCESSOR = "processor"


DEFAULT_PERSONA = Persona.STREAMLINER
