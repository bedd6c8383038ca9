"""GraphQL documents sent to the Integrates API."""

GET_GROUP_FINDINGS = """
query GetFindingsIDS($group: String!) {
  group(groupName: $group) {
    name
    organization
    findings { title status id }
    roots { ... on GitRoot { id nickname state } }
  }
}
"""

GET_FINDING_LOCATIONS = """
query GetDraftsFromUUID($uuid: String!, $draftToken: String!, $vulnToken: String!, $first: Int!) {
  finding(identifier: $uuid) {
    draftsConnection(after: $draftToken, first: $first) {
      edges { node { where specific state vulnerabilityType } }
      pageInfo { endCursor hasNextPage }
    }
    vulnerabilitiesConnection(after: $vulnToken, first: $first) {
      edges { node { where specific state vulnerabilityType } }
      pageInfo { endCursor hasNextPage }
    }
  }
}
"""
