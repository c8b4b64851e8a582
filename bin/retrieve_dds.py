#!/usr/bin/env python3
import sys
import json
import traceback,pdb
import logging
import argparse

parser = argparse.ArgumentParser(description = "Retrieve Due Diligence Statements from EUDR.")
parser.add_argument('identifier', nargs = '*', help = "DDS identifier(s) (UUIDs) to look up")
parser.add_argument('--internal-reference', '-i', default = None, help = "Look up statements by your internal reference number instead")
parser.add_argument('--reference-number', '-r', default = None, help = "Fetch a full statement by reference number; requires --verification-number")
parser.add_argument('--verification-number', default = None, help = "The verification number that goes with --reference-number")
parser.add_argument('--decode-geojson', default = False, action = 'store_true', help = "Decode producer geometries when fetching a full statement")
parser.add_argument('--v1', default = False, action = 'store_true', help = "Use version 1 of the retrieval service instead of version 2")
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

    client_class = eudr.RetrievalClient if args.v1 else eudr.RetrievalClientV2
    client = client_class(
        config = args.config,
        endpoint = args.endpoint,
        verbose = args.verbose,
    )

    if args.reference_number:
        if not args.verification_number:
            raise Exception("--verification-number is required with --reference-number")
        data = client.get_statement_by_identifiers(
            args.reference_number,
            args.verification_number,
            decode_geojson = args.decode_geojson,
        )
    elif args.internal_reference:
        data = client.get_dds_info_by_internal_reference_number(args.internal_reference)
    elif args.identifier:
        data = client.get_dds_info(args.identifier)
    else:
        raise Exception("No identifier, internal reference or reference number specified")

    print(json.dumps(data, sort_keys = True, indent = 4))


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
