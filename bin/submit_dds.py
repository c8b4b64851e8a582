#!/usr/bin/env python3
import sys
import json
import traceback,pdb
import logging
import argparse

parser = argparse.ArgumentParser(description = "Submit, amend or retract a Due Diligence Statement.")
parser.add_argument('statement', nargs = '?', default = None, help = "A json file holding the statement")
parser.add_argument('--operator-type', default = 'OPERATOR', help = "The role the statement is submitted in. Default is OPERATOR")
parser.add_argument('--amend', default = None, metavar = 'DDS_IDENTIFIER', help = "Amend the statement with this identifier instead of submitting a new one")
parser.add_argument('--retract', default = None, metavar = 'DDS_IDENTIFIER', help = "Retract the statement with this identifier")
parser.add_argument('--dry-run', '-n', default = False, action = 'store_true', help = "Validate and print the request envelope without sending it")
parser.add_argument('--v1', default = False, action = 'store_true', help = "Use version 1 of the submission service instead of version 2")
parser.add_argument('--config', '-c', default = None, help = "A json config file or a folder with settings.json. Defaults to ./settings.json")
parser.add_argument('--endpoint', default = None, help = "Full endpoint url, or 'production' / 'acceptance'. Derived from the client id if not provided")
parser.add_argument('--development', '--dev', '-d', default=False, action = 'store_true', help="Source the module in the current directory instead of using the installed package.")
parser.add_argument('--verbose', '-v', default=False, action = 'store_true', help="Prints out extra details about the request and response")
parser.add_argument('--debug', default=False, action = 'store_true', help="Run with postmortem debugger to investigate an error")
args = parser.parse_args()

if args.development:
    sys.path.insert(0, '.')

import eudr
import lxml.etree

logging.basicConfig(level = logging.DEBUG if args.verbose else logging.WARNING)

def runprogram():

    client_class = eudr.SubmissionClient if args.v1 else eudr.SubmissionClientV2
    client = client_class(
        config = args.config,
        endpoint = args.endpoint,
        verbose = args.verbose,
    )
    send = not args.dry_run

    if args.retract:
        resp = client.retract_dds(args.retract, send_request = send)
        if send:
            print(f"Retract status: {resp.status}")
    else:
        if not args.statement:
            raise Exception("No statement file specified")
        with open(args.statement) as fh:
            statement = json.load(fh)

        if args.amend:
            resp = client.amend_dds(args.amend, statement, send_request = send)
            if send:
                print(f"Amended {args.amend}")
        else:
            resp = client.submit_dds(statement, operator_type = args.operator_type, send_request = send)
            if send:
                print(f"DDS identifier: {resp.dds_identifier}")

    if not send:
        print(lxml.etree.tostring(resp, pretty_print = True).decode('utf-8'))


if __name__ == '__main__':

    if not args.debug:
        try:
            runprogram()
        except eudr.EUDRError as err:
            print(f"{err.error_code} ({err.http_status}): {err.message}", file = sys.stderr)
            if err.field:
                print(f"Field: {err.field}", file = sys.stderr)
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
