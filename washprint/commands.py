"""Flask CLI commands: ``flask printer scan`` and ``flask printer status``."""
import click
from flask import current_app
from flask.cli import AppGroup

from washprint.printer import connection
from washprint.printer.connection import SerialPrinter, USBPrinter
from washprint.printer.exceptions import PrinterError

printer_cli = AppGroup("printer", help="Thermal printer tools.")


@printer_cli.command("scan")
def scan():
    """List known USB printers and serial ports."""
    click.echo("Scanning for USB printers...")
    if not connection.USB_AVAILABLE:
        click.echo("  pyusb not installed. Run: pip install pyusb")
    else:
        devices = USBPrinter.scan_devices()
        for dev in devices:
            click.echo(f"  Found: {dev['vendor_name']} - {dev['vendor_id_hex']}:{dev['product_id_hex']}")
        if not devices:
            click.echo("  No known printer vendors detected")

    click.echo("Scanning for serial ports...")
    if not connection.SERIAL_AVAILABLE:
        click.echo("  pyserial not installed. Run: pip install pyserial")
    else:
        ports = SerialPrinter.scan_ports()
        for port in ports:
            click.echo(f"  Found: {port}")
        if not ports:
            click.echo("  No serial ports detected")


@printer_cli.command("status")
@click.option("--connect", is_flag=True, help="Try to connect to the configured printer first.")
@click.option("--find-baudrate", is_flag=True, help="Connect a serial printer at the first baud rate that answers.")
@click.option("--test-page", is_flag=True, help="Print a test page after connecting.")
@click.option("--simple-test", is_flag=True, help="Send unformatted test text after connecting.")
def status(connect, find_baudrate, test_page, simple_test):
    """Show the printer connection state."""
    service = current_app.extensions["washprint"]
    manager = service.manager

    try:
        if find_baudrate:
            params = manager.find_baudrate()
            click.echo(f"Printer answered at {params['baudrate']} baud")
        elif connect or test_page or simple_test:
            manager.connect()
        if test_page:
            service.print_test_page()
            click.echo("Test page sent")
        if simple_test:
            service.print_simple_test()
            click.echo("Simple test sent")
    except PrinterError as e:
        raise click.ClickException(str(e))

    info = service.status()
    click.echo(f"State:       {info['state']}")
    click.echo(f"Status:      {info['status_message']}")
    click.echo(f"Device:      {info['device'] or '-'}")
    click.echo(f"Session:     {'saved' if info['persistent_session'] else 'none'}")
    click.echo(f"Transports:  {', '.join(info['transports'])}")
