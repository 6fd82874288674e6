from dojo_upload.cli import cli

cli()
