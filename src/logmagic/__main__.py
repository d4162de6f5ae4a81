from logmagic.cli import entrypoint

entrypoint()
