#!/usr/bin/env python3
import sys
import traceback,pdb
import logging
import argparse

parser = argparse.ArgumentParser(description = "Send a message to the EUDR echo service to check connectivity and credentials.")
parser.add_argument('message', nargs = '?', default = 'hello', help = "The text to echo")
parser.add_argument('--config', '-c', default = None, help = "A json config file or a folder with settings.json. Defaults to ./settings.json")
parser.add_argument('--endpoint', default = None, help = "Full endpoint url, or 'production' / 'acceptance'. Derived from the client id if not provided")
parser.add_argument('--development', '--dev', '-d', default=False, action = 'store_true', help="Source the module in the current directory instead of using the installed package.")
parser.add_argument('--verbose', '-v', default=False, action = 'store_true', help="Prints out extra details about the request and response")
parser.add_argument('--debug', default=False, action = 'store_true', help="Run with postmortem debugger to investigate an error")
args = parser.parse_args()

if args.development:
    sys.path.insert(0, '.')

import eudr

logging.basicConfig(level = logging.DEBUG if args.verbose else logging.WARNING)

def runprogram():

    client = eudr.EchoClient(
        config = args.config,
        endpoint = args.endpoint,
        verbose = args.verbose,
    )
    print(f"Sending echo to {client.endpoint}")
    resp = client.echo(args.message)
    print(f"Echo status: {resp.status}")


if __name__ == '__main__':

    if not args.debug:
        try:
            runprogram()
        except eudr.EUDRError as err:
            print(f"{err.error_code} ({err.http_status}): {err.message}", file = sys.stderr)
            sys.exit(1)
    else:
        try:
            runprogram()
        except Exception as e:
            errtype, value, tb = sys.exc_info()
            sys.last_type, sys.last_value, sys.last_traceback = errtype, value, tb
            print("\n*** Error caught, preparing for post-mortem debugging ***\n------------" )
            traceback.print_exception(errtype, value, tb)
            print("\n------------\n")
            pdb.post_mortem(tb)
            raise
