"""
Lambda security checks
"""

import json
import re
from typing import Dict, List

from ..core.exceptions import RemediationError
from ..core.framework import (AlternateRuntimeSpec, Capability, RemediationInput,
                              Result, SecurityCheck)
from ..core.snapshot import describe_missing

LAMBDA_TRUST_POLICY = {
    "Version": "2012-10-17",
    "Statement": [{
        "Effect": "Allow",
        "Principal": {"Service": "lambda.amazonaws.com"},
        "Action": "sts:AssumeRole"
    }]
}

BASIC_EXECUTION_POLICY = 'arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole'

DEPRECATED_RUNTIMES = ['python2.7', 'python3.6', 'python3.7', 'nodejs10.x',
                       'nodejs12.x', 'ruby2.5', 'dotnetcore2.1', 'go1.x']


def role_name_from_arn(role_arn: str) -> str:
    return role_arn.split('/')[-1]


class _LambdaCheck(SecurityCheck):
    """Shared lookups for checks walking every function's configuration"""

    category = "Lambda"
    domain = "Serverless"

    def _functions(self, snapshot, region, results):
        """Listed functions for a region, or None after reporting why there are none"""
        list_functions = snapshot.get('lambda', 'listFunctions', region)
        if list_functions is None:
            return None

        if list_functions.error or list_functions.data is None:
            self.add_result(results, 3,
                            f"Unable to query Lambda functions: {list_functions.describe_error()}",
                            region)
            return None

        if not list_functions.data:
            self.add_result(results, 0, 'No Lambda functions found', region)
            return None
        return list_functions.data

    def _configuration(self, snapshot, region, function, results):
        get_function = snapshot.get('lambda', 'getFunction', region, function['FunctionName'])
        if (get_function is None or get_function.error or not get_function.data
                or not get_function.data.get('Configuration')):
            self.add_result(results, 3,
                            f"Unable to get Lambda function details: {describe_missing(get_function)}",
                            region, function.get('FunctionArn'))
            return None
        return get_function.data['Configuration']


class LambdaMissingExecutionRoleCheck(_LambdaCheck):
    """Check that every Lambda function's execution role exists"""

    check_id = "lambda_missing_execution_role"
    title = "Lambda Function Execution Role Exists"
    severity = "High"
    description = "Ensures every AWS Lambda function has an assigned IAM role that still exists."
    more_info = ("Functions whose execution role was deleted fail at invocation time and "
                 "may pick up a newly created role with the same name.")
    recommended_action = "Ensure all Lambda functions have valid IAM roles assigned."
    apis = ['Lambda:listFunctions', 'Lambda:getFunction', 'IAM:listRoles', 'IAM:getRole']
    compliance = {
        'hipaa': 'HIPAA requires that access to workloads processing PHI is controlled '
                 'through defined and valid identities.',
    }

    def run(self, snapshot, settings) -> List[Result]:
        results = []

        for region in settings.regions:
            functions = self._functions(snapshot, region, results)
            if functions is None:
                continue

            # IAM is global and collected in the default region
            list_roles = snapshot.get('iam', 'listRoles', settings.default_region)
            if list_roles is None or list_roles.error or not list_roles.data:
                self.add_result(results, 3,
                                f"Unable to query IAM roles: {describe_missing(list_roles)}",
                                region)
                continue
            role_names = {role.get('RoleName') for role in list_roles.data}

            for function in functions:
                if not function.get('FunctionName'):
                    continue

                configuration = self._configuration(snapshot, region, function, results)
                if configuration is None:
                    continue

                role_arn = configuration.get('Role')
                if not role_arn:
                    self.add_result(results, 3,
                                    f"Lambda function \"{function['FunctionName']}\" has NO assigned IAM role!",
                                    region, function.get('FunctionArn'))
                    continue

                role_name = role_name_from_arn(role_arn)
                if role_name not in role_names:
                    self.add_result(results, 2, f"Assigned IAM role NOT found: {role_arn}",
                                    region, function.get('FunctionArn'))
                    continue

                get_role = snapshot.get('iam', 'getRole', settings.default_region, role_name)
                if get_role is None or get_role.error or not get_role.data or not get_role.data.get('Role'):
                    self.add_result(results, 2,
                                    f"Assigned IAM role exists but unable to fetch details: {role_arn}",
                                    region, function.get('FunctionArn'))
                else:
                    self.add_result(results, 0, f"Assigned IAM role exists and retrieved: {role_arn}",
                                    region, function.get('FunctionArn'))

        return results


class LambdaMultipleRoleCheck(_LambdaCheck):
    """Check that Lambda functions do not share an execution role"""

    check_id = "lambda_multiple_role"
    title = "Lambda Function can share Multiple Roles"
    severity = "Medium"
    description = ("Identify AWS Lambda functions that share the same IAM execution role "
                   "and verify that the roles exist.")
    more_info = ("A role shared by several functions carries the union of their permissions, "
                 "so a compromise of one function exposes the access of all of them.")
    recommended_action = "Ensure that each Lambda function has its own IAM role assigned and roles are not shared."
    apis = ['Lambda:listFunctions', 'Lambda:getFunction', 'IAM:getRole']
    capabilities = frozenset({Capability.RUN, Capability.REMEDIATE})

    remediation_description = ("This remediation creates a unique IAM role for the Lambda function and "
                               "attaches the required policies before updating the function configuration")
    remediation_min_version = "202508210226"
    actions = {
        'remediate': ['iam:createRole', 'iam:attachRolePolicy', 'lambda:updateFunctionConfiguration'],
        'rollback': ['lambda:updateFunctionConfiguration', 'iam:detachRolePolicy', 'iam:deleteRole'],
    }
    permissions = {
        'remediate': ['iam:CreateRole', 'iam:AttachRolePolicy', 'lambda:UpdateFunctionConfiguration'],
        'rollback': ['lambda:UpdateFunctionConfiguration', 'iam:DetachRolePolicy', 'iam:DeleteRole'],
    }
    remediation_inputs = {
        'roleName': RemediationInput(
            name='(Optional) New Role Name',
            description='The IAM Role name that will be created for the Lambda function.',
            regex=r'^[A-Za-z0-9+=,.@_-]{1,64}$',
        ),
        'policyArn': RemediationInput(
            name='(Optional) IAM Policy ARN',
            description='The IAM policy ARN to attach to the new role.',
            regex=r'^arn:aws:iam::([0-9]{12}|aws):policy/[A-Za-z0-9+=,.@_/-]+$',
        ),
    }

    def run(self, snapshot, settings) -> List[Result]:
        results = []

        for region in settings.regions:
            functions = self._functions(snapshot, region, results)
            if functions is None:
                continue

            role_to_functions: Dict[str, List[dict]] = {}
            for function in functions:
                if not function.get('FunctionName'):
                    continue

                configuration = self._configuration(snapshot, region, function, results)
                if configuration is None:
                    continue

                role_arn = configuration.get('Role')
                if not role_arn:
                    self.add_result(results, 3,
                                    f"Lambda function \"{function['FunctionName']}\" has NO assigned IAM role!",
                                    region, function.get('FunctionArn'))
                    continue

                role_to_functions.setdefault(role_arn, []).append(function)

                get_role = snapshot.get('iam', 'getRole', settings.default_region,
                                        role_name_from_arn(role_arn))
                if get_role is None or get_role.error or not get_role.data or not get_role.data.get('Role'):
                    self.add_result(results, 2,
                                    f"Assigned IAM role not found or inaccessible: {role_arn}",
                                    region, function.get('FunctionArn'))

            for role_arn, sharing in role_to_functions.items():
                names = [function['FunctionName'] for function in sharing]
                for function in sharing:
                    if len(sharing) > 1:
                        self.add_result(results, 2,
                                        f"IAM role \"{role_arn}\" is shared by multiple Lambda functions: "
                                        f"{', '.join(names)}",
                                        region, function.get('FunctionArn'))
                    else:
                        self.add_result(results, 0,
                                        f"IAM role \"{role_arn}\" is uniquely assigned to Lambda function "
                                        f"\"{function['FunctionName']}\"",
                                        region, function.get('FunctionArn'))

        return results

    def _validated_input(self, inputs, name, default):
        value = inputs.get(name) or default
        regex = self.remediation_inputs[name].regex
        if not re.match(regex, value):
            raise RemediationError(f"Invalid value for {name}: {value}")
        return value

    def remediate(self, config, snapshot, settings, resource):
        function_name = resource.split(':').pop().split('/').pop()
        region = settings['region']

        get_function = snapshot.get('lambda', 'getFunction', region, function_name)
        if (get_function is None or get_function.error or not get_function.data
                or not get_function.data.get('Configuration')):
            raise RemediationError('Unable to get Lambda function details')
        old_role_arn = get_function.data['Configuration'].get('Role')

        inputs = settings.get('inputs') or {}
        role_name = self._validated_input(inputs, 'roleName', f"{function_name}-execution-role")
        policy_arn = self._validated_input(inputs, 'policyArn', BASIC_EXECUTION_POLICY)

        transaction = settings['remediation_file']
        transaction.record_pre(OldRole=old_role_arn)

        iam_client = config.get_client('iam', region)
        created = iam_client.create_role(
            RoleName=role_name,
            AssumeRolePolicyDocument=json.dumps(LAMBDA_TRUST_POLICY)
        )
        new_role_arn = created['Role']['Arn']
        iam_client.attach_role_policy(RoleName=role_name, PolicyArn=policy_arn)

        lambda_client = config.get_client('lambda', region)
        lambda_client.update_function_configuration(FunctionName=function_name, Role=new_role_arn)

        transaction.record_post(NewRole=new_role_arn, AttachedPolicy=policy_arn)
        transaction.record_summary(Action='UniqueExecutionRole', Lambda=function_name)

        return {
            'FunctionName': function_name,
            'Role': new_role_arn,
            'action': self.actions['remediate'],
        }


class LambdaOldRuntimesCheck(_LambdaCheck):
    """Check for Lambda functions on deprecated runtimes"""

    check_id = "lambda_old_runtimes"
    title = "Lambda Old Runtimes"
    severity = "Medium"
    description = "Ensures Lambda functions are not using deprecated runtimes."
    more_info = "Deprecated runtimes no longer receive security patches from AWS."
    recommended_action = "Upgrade the function to a supported runtime."
    apis = ['Lambda:listFunctions']
    compliance = {
        'pci': 'PCI requires that system components are protected from known '
               'vulnerabilities by installing applicable security patches.',
    }
    asl = AlternateRuntimeSpec(
        version="1",
        payload={
            "service": "lambda",
            "api": "listFunctions",
            "resource": "FunctionArn",
            "conditions": [{"property": "Runtime", "op": "NE", "value": runtime}
                           for runtime in DEPRECATED_RUNTIMES],
            "logical": "AND",
            "pass_message": "Lambda function is using a supported runtime",
            "fail_message": "Lambda function is using a deprecated runtime",
        },
    )

    def run(self, snapshot, settings) -> List[Result]:
        results = []

        for region in settings.regions:
            functions = self._functions(snapshot, region, results)
            if functions is None:
                continue

            for function in functions:
                runtime = function.get('Runtime')
                if not runtime:
                    # Container image functions have no managed runtime to deprecate
                    self.add_result(results, 0,
                                    "Lambda function is deployed as a container image",
                                    region, function.get('FunctionArn'))
                elif runtime in DEPRECATED_RUNTIMES:
                    self.add_result(results, 2,
                                    f"Lambda function is using deprecated runtime {runtime}",
                                    region, function.get('FunctionArn'))
                else:
                    self.add_result(results, 0,
                                    f"Lambda function is using supported runtime {runtime}",
                                    region, function.get('FunctionArn'))

        return results
