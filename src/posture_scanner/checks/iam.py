"""
IAM security checks
"""

from typing import List

from ..core.framework import Result, SecurityCheck
from ..core.snapshot import describe_missing


class IAMRoleHasTagsCheck(SecurityCheck):
    """Check that IAM roles carry tags"""

    check_id = "iam_role_has_tags"
    title = "IAM Role Has Tags"
    category = "IAM"
    domain = "Identity and Access Management"
    severity = "Low"
    description = "Ensure that AWS IAM Roles have tags associated."
    more_info = "Tags help you to group resources together that are related to or associated with each other."
    recommended_action = "Modify IAM role and add tags."
    apis = ['IAM:listRoles', 'IAM:getRole']

    def run(self, snapshot, settings) -> List[Result]:
        results = []
        region = settings.default_region

        list_roles = snapshot.get('iam', 'listRoles', region)
        if list_roles is None:
            return results

        if list_roles.error or list_roles.data is None:
            self.add_result(results, 3, f"Unable to query for IAM roles: {list_roles.describe_error()}")
            return results

        if not list_roles.data:
            self.add_result(results, 0, 'No IAM roles found')
            return results

        for role in list_roles.data:
            if not role.get('Arn') or not role.get('RoleName'):
                continue

            get_role = snapshot.get('iam', 'getRole', region, role['RoleName'])
            if get_role is None or get_role.error or not get_role.data or not get_role.data.get('Role'):
                self.add_result(results, 3,
                                f"Unable to query for IAM role details: {describe_missing(get_role)}",
                                'global', role['Arn'])
                continue

            if get_role.data['Role'].get('Tags'):
                self.add_result(results, 0, 'IAM Role has tags', 'global', role['Arn'])
            else:
                self.add_result(results, 2, 'IAM Role does not have tags', 'global', role['Arn'])

        return results


class IAMUserWithoutMFACheck(SecurityCheck):
    """Check for IAM users without MFA enabled"""

    check_id = "iam_user_no_mfa"
    title = "IAM users should have MFA enabled"
    category = "IAM"
    domain = "Identity and Access Management"
    severity = "High"
    description = "Ensures IAM users with console access have an MFA device configured."
    more_info = "MFA adds a second factor that protects console sign-in from stolen passwords."
    recommended_action = "Enable MFA for IAM user in AWS Console"
    apis = ['IAM:listUsers', 'IAM:listMFADevices', 'IAM:getLoginProfile']
    compliance = {
        'cis': 'CIS 1.10 requires MFA for all IAM users that have a console password.',
        'pci': 'PCI requires multi-factor authentication for all non-console '
               'and remote administrative access.',
        'hipaa': 'HIPAA requires strong authentication for users accessing systems with PHI.',
    }

    def run(self, snapshot, settings) -> List[Result]:
        results = []
        region = settings.default_region

        list_users = snapshot.get('iam', 'listUsers', region)
        if list_users is None:
            return results

        if list_users.error or list_users.data is None:
            self.add_result(results, 3, f"Unable to query for IAM users: {list_users.describe_error()}")
            return results

        if not list_users.data:
            self.add_result(results, 0, 'No IAM users found')
            return results

        for user in list_users.data:
            username = user.get('UserName')
            if not username:
                continue
            arn = user.get('Arn', username)

            # A missing login profile means the user cannot sign in to the console
            login_profile = snapshot.get('iam', 'getLoginProfile', region, username)
            if login_profile is None:
                has_console_access = False
            elif login_profile.error:
                code = login_profile.error.get('code') if isinstance(login_profile.error, dict) else None
                if code != 'NoSuchEntity':
                    self.add_result(results, 3,
                                    f"Unable to query login profile: {login_profile.describe_error()}",
                                    'global', arn)
                    continue
                has_console_access = False
            else:
                has_console_access = True

            mfa_devices = snapshot.get('iam', 'listMFADevices', region, username)
            if has_console_access and (mfa_devices is None or mfa_devices.error):
                self.add_result(results, 3,
                                f"Unable to query MFA devices: {describe_missing(mfa_devices)}",
                                'global', arn)
                continue
            has_mfa = bool(mfa_devices and mfa_devices.data)

            if has_console_access and not has_mfa:
                self.add_result(results, 2,
                                'IAM user has console access but no MFA device configured',
                                'global', arn)
            elif has_console_access:
                self.add_result(results, 0, 'IAM user has MFA device configured', 'global', arn)
            else:
                self.add_result(results, 0, 'IAM user does not have console access', 'global', arn)

        return results
