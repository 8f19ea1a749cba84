"""Get-PublicIp runbook: reports the public address of the job's sandbox and its subnet."""
import argparse
import ipaddress
import json
import logging
import sys

import requests


logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger("public-ip")


IP_LOOKUP_URL = "https://api.ipify.org?format=json"
REQUEST_TIMEOUT = 30


def get_public_ip():
    response = requests.get(IP_LOOKUP_URL, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    return ipaddress.ip_address(response.json()["ip"])


def subnet_for(address, prefix=None):
    if prefix is None:
        prefix = 24 if address.version == 4 else 64
    return ipaddress.ip_network(f"{address}/{prefix}", strict=False)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Report the public IP subnet of this job.")
    parser.add_argument("--prefix", type=int, default=None,
                        help="subnet prefix length (default 24 for IPv4, 64 for IPv6)")
    args = parser.parse_args(argv)

    try:
        address = get_public_ip()
        subnet = subnet_for(address, args.prefix)
    except (requests.RequestException, KeyError, ValueError) as e:
        logger.error(f"Could not determine public IP: {e}")
        sys.exit(1)

    logger.info(f"Public IP {address} is in subnet {subnet}")
    json.dump({"ip": str(address), "subnet": str(subnet)}, sys.stdout)
    sys.stdout.write("\n")


if __name__ == "__main__":
    main()
