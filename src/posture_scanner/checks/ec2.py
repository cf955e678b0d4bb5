"""
EC2 security checks
"""

from typing import List

from ..core.framework import Result, SecurityCheck

SENSITIVE_PORTS = [22, 3389, 1433, 3306, 5432, 6379, 27017]
OPEN_CIDRS = ('0.0.0.0/0', '::/0')


def exposed_ports(rule: dict) -> List[int]:
    """Sensitive ports a security group rule opens to the whole internet"""
    open_ranges = [r.get('CidrIp') for r in rule.get('IpRanges', [])] + \
                  [r.get('CidrIpv6') for r in rule.get('Ipv6Ranges', [])]
    if not any(cidr in OPEN_CIDRS for cidr in open_ranges):
        return []

    # All protocols
    if rule.get('IpProtocol') == '-1':
        return list(SENSITIVE_PORTS)

    from_port = rule.get('FromPort', 0)
    to_port = rule.get('ToPort', 65535)
    return [port for port in SENSITIVE_PORTS if from_port <= port <= to_port]


class EC2SecurityGroupOpenPortsCheck(SecurityCheck):
    """Check for EC2 security groups with open ports to internet"""

    check_id = "ec2_sg_open_ports"
    title = "Security groups should not allow unrestricted access"
    category = "EC2"
    domain = "Compute"
    severity = "High"
    description = "Ensures security groups do not open sensitive ports to 0.0.0.0/0 or ::/0."
    more_info = "Unrestricted access exposes resources to attacks from anywhere on the internet."
    recommended_action = "Restrict source IP ranges to only necessary addresses"
    apis = ['EC2:describeSecurityGroups']
    compliance = {
        'cis': 'CIS 5.2 requires that no security group allows ingress from 0.0.0.0/0 '
               'to remote server administration ports.',
        'pci': 'PCI requires restricting inbound traffic to that which is necessary '
               'for the cardholder data environment.',
    }

    def run(self, snapshot, settings) -> List[Result]:
        results = []

        for region in settings.regions:
            groups = snapshot.get('ec2', 'describeSecurityGroups', region)
            if groups is None:
                continue

            if groups.error or groups.data is None:
                self.add_result(results, 3,
                                f"Unable to query for security groups: {groups.describe_error()}",
                                region)
                continue

            if not groups.data:
                self.add_result(results, 0, 'No security groups found', region)
                continue

            for group in groups.data:
                group_id = group.get('GroupId')
                resource = f"arn:aws:ec2:{region}:{group.get('OwnerId', '')}:security-group/{group_id}"

                ports = sorted({port for rule in group.get('IpPermissions', [])
                                for port in exposed_ports(rule)})
                if ports:
                    self.add_result(results, 2,
                                    f"Security group {group.get('GroupName', group_id)} allows unrestricted "
                                    f"access on ports {', '.join(str(p) for p in ports)}",
                                    region, resource)
                else:
                    self.add_result(results, 0,
                                    f"Security group {group.get('GroupName', group_id)} does not expose "
                                    f"sensitive ports",
                                    region, resource)

        return results
