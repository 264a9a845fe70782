"""Kindler core package.

Modules:
- mobi: MOBI/PalmDB metadata extraction
- scanner: device documents walk into a Library snapshot
- device: mount table probe and polling
- session: discovery state machine
- console: text rendering of the session phase
- config: INI parsing and config object
"""
