import os
import sys
from datetime import datetime

import requests


class HackHubAPITester:
    def __init__(self, base_url=None):
        self.base_url = (base_url or os.environ.get("HACKHUB_API_URL", "http://localhost:8000/api")).rstrip("/")
        self.admin_email = os.environ.get("SUPERADMIN_EMAIL", "")
        self.admin_password = os.environ.get("SUPERADMIN_PASSWORD", "")
        self.admin_token = None
        self.participant_token = None
        self.event_slug = f"smoke-{datetime.now().strftime('%H%M%S')}"
        self.project_id = None
        self.criterion_id = None
        self.tests_run = 0
        self.tests_passed = 0
        self.test_results = []

    def log_test(self, name, success, details=""):
        """Log test result"""
        self.tests_run += 1
        if success:
            self.tests_passed += 1
            print(f"✅ {name}")
        else:
            print(f"❌ {name} - {details}")

        self.test_results.append({
            "test": name,
            "success": success,
            "details": details
        })

    def run_test(self, name, method, endpoint, expected_status, data=None, token=None):
        """Run a single API test"""
        url = f"{self.base_url}/{endpoint}" if endpoint else f"{self.base_url}/"
        headers = {'Content-Type': 'application/json'}
        if token:
            headers['Authorization'] = f'Bearer {token}'

        try:
            response = requests.request(method, url, json=data, headers=headers, timeout=20)
        except requests.RequestException as exc:
            self.log_test(name, False, f"Exception: {exc}")
            return False, {}

        success = response.status_code == expected_status
        details = f"Status: {response.status_code}"
        if not success:
            try:
                details += f", Error: {response.json().get('detail', 'Unknown error')}"
            except ValueError:
                details += f", Response: {response.text[:100]}"

        self.log_test(name, success, details)
        if not success or not response.content:
            return success, {}
        try:
            return success, response.json()
        except ValueError:
            return success, {"raw": response.text}

    def test_health_endpoints(self):
        """Test basic health endpoints"""
        print("\n🔍 Testing Health Endpoints...")
        self.run_test("Root API endpoint", "GET", "", 200)
        self.run_test("Health check endpoint", "GET", "health", 200)
        self.run_test("Public events", "GET", "events", 200)

    def test_admin_login(self):
        """Log in as the seeded superadmin"""
        print("\n🔍 Testing Admin Authentication...")
        if not self.admin_email or not self.admin_password:
            print("   SUPERADMIN_EMAIL/SUPERADMIN_PASSWORD not set")
            return False

        success, response = self.run_test(
            "Admin login", "POST", "auth/login", 200,
            {"email": self.admin_email, "password": self.admin_password},
        )
        if success and 'access_token' in response:
            self.admin_token = response['access_token']
            print(f"   Admin token obtained: {self.admin_token[:20]}...")
            return True
        return False

    def test_event_setup(self):
        """Create and open a throwaway event"""
        print("\n🔍 Testing Event Setup...")
        self.run_test(
            "Create event", "POST", "superadmin/events", 200,
            {"slug": self.event_slug, "name": "Smoke Test Jam", "max_team_size": 4},
            self.admin_token,
        )
        self.run_test(
            "Open event", "PATCH", f"superadmin/events/{self.event_slug}", 200,
            {
                "is_published": True,
                "is_registration_open": True,
                "is_submission_open": True,
                "is_judging_open": True,
            },
            self.admin_token,
        )
        success, response = self.run_test(
            "Create criterion", "POST", f"admin/events/{self.event_slug}/criteria", 200,
            {"name": "Impact", "weight": 1, "max_score": 10},
            self.admin_token,
        )
        if success:
            self.criterion_id = response.get("id")

    def test_participant_flow(self):
        """Sign up, register, build a team and submit a project"""
        print("\n🔍 Testing Participant Flow...")
        stamp = datetime.now().strftime("%H%M%S%f")
        success, response = self.run_test(
            "Participant signup", "POST", "auth/signup", 200,
            {"email": f"smoke{stamp}@example.com", "password": "smoketest123"},
        )
        if not success:
            return
        self.participant_token = response['access_token']
        slug = self.event_slug

        self.run_test("Dashboard before profile", "GET", f"events/{slug}/dashboard", 403, token=self.participant_token)
        self.run_test(
            "Complete profile", "POST", "auth/profile", 200,
            {"full_name": f"Smoke Tester {stamp}", "skills": ["python"]},
            self.participant_token,
        )
        self.run_test("Dashboard before registering", "GET", f"events/{slug}/dashboard", 403, token=self.participant_token)
        self.run_test(
            "Register for event", "POST", f"events/{slug}/register", 200,
            {"agreed_to_coc": True, "agreed_to_terms": True},
            self.participant_token,
        )
        self.run_test("Event dashboard", "GET", f"events/{slug}/dashboard", 200, token=self.participant_token)
        self.run_test("Admin dashboard as participant", "GET", f"admin/events/{slug}/dashboard", 403, token=self.participant_token)
        self.run_test("Create team", "POST", f"events/{slug}/team", 200, {"name": "Smoke Team"}, self.participant_token)
        success, response = self.run_test(
            "Save project", "PUT", f"events/{slug}/project", 200,
            {"title": "Smoke Project", "tagline": "Built by the smoke tester"},
            self.participant_token,
        )
        if success:
            self.project_id = response.get("id")
        self.run_test("Submit project", "POST", f"events/{slug}/project/submit", 200, token=self.participant_token)
        self.run_test("Participant leaderboard", "GET", f"events/{slug}/leaderboard", 200, token=self.participant_token)

    def test_judging(self):
        """Invite the admin as judge and score the submitted project"""
        if not self.project_id or not self.criterion_id:
            print("\n❌ Skipping judging - no project or criterion")
            return

        print("\n🔍 Testing Judging...")
        slug = self.event_slug
        self.run_test("Invite judge", "POST", f"admin/events/{slug}/judges", 200, {"email": self.admin_email}, self.admin_token)
        self.run_test("Judge portal", "GET", f"judge/events/{slug}", 200, token=self.admin_token)
        self.run_test(
            "Score project", "PUT", f"judge/events/{slug}/projects/{self.project_id}/score", 200,
            {"criteria_scores": {str(self.criterion_id): 8}},
            self.admin_token,
        )
        self.run_test("Admin projects by rank", "GET", f"admin/events/{slug}/projects?sort=rank", 200, token=self.admin_token)
        self.run_test("Leaderboard export", "GET", f"admin/events/{slug}/leaderboard/export?format=csv", 200, token=self.admin_token)
        self.run_test("Event admin logs", "GET", f"admin/events/{slug}/logs", 200, token=self.admin_token)

    def run_all_tests(self):
        """Run all tests in sequence"""
        print("🚀 Starting HackHub API Testing...")
        print(f"Testing against: {self.base_url}")

        self.test_health_endpoints()

        if self.test_admin_login():
            self.test_event_setup()
            self.test_participant_flow()
            self.test_judging()
        else:
            print("\n❌ Skipping event tests - no admin token")

        return self.print_summary()

    def print_summary(self):
        """Print test summary"""
        print("\n📊 Test Summary:")
        print(f"Tests run: {self.tests_run}")
        print(f"Tests passed: {self.tests_passed}")
        if self.tests_run:
            print(f"Success rate: {(self.tests_passed / self.tests_run * 100):.1f}%")

        if self.tests_passed < self.tests_run:
            print("\n❌ Failed tests:")
            for result in self.test_results:
                if not result['success']:
                    print(f"  - {result['test']}: {result['details']}")

        return self.tests_passed == self.tests_run


def main():
    tester = HackHubAPITester()
    success = tester.run_all_tests()
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
