from shipment.cli.app import app

app(prog_name="shipment")
